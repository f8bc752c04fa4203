"""Exceptions shared by the external collaborator clients."""

from typing import Optional


class CollaboratorUnavailable(Exception):
    """An external collaborator (GitHub, Jenkins, board, container runtime) failed."""

    service = "collaborator"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubClientError(CollaboratorUnavailable):
    """Raised when a GitHub REST call fails."""

    service = "github"


class CIClientError(CollaboratorUnavailable):
    """Raised when a Jenkins call fails."""

    service = "jenkins"


class BoardClientError(CollaboratorUnavailable):
    """Raised when a board GraphQL call fails or returns errors."""

    service = "monday"


class ContainerRuntimeError(CollaboratorUnavailable):
    """Raised when a docker command fails or times out."""

    service = "docker"
