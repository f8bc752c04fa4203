"""Source-control event data models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


NO_COMMIT_MESSAGE = "No commit message"
UNKNOWN_ACTOR = "Unknown"


class EventKind(str, Enum):
    """Kind of source-control event."""

    PUSH = "push"
    PULL_REQUEST = "pull_request"
    PULL_REQUEST_REVIEW = "pull_request_review"
    UNKNOWN = "unknown"


class RepositoryRef(BaseModel):
    """Repository the event originated from."""

    full_name: str = "Unknown"
    html_url: str = ""

    @property
    def short_name(self) -> str:
        """Repository name without the owner prefix."""
        if "/" in self.full_name:
            return self.full_name.split("/", 1)[1]
        return ""


class PipelineEvent(BaseModel):
    """Canonical event derived once per inbound webhook."""

    event_kind: EventKind
    action: Optional[str] = None  # 'opened', 'closed', 'reopened', ...
    repository: RepositoryRef = RepositoryRef()
    actor: str = UNKNOWN_ACTOR
    commit_id: str = ""
    commit_message: str = NO_COMMIT_MESSAGE
    ref_branch: str = ""
    source_branch: str = ""
    target_branch: str = ""
    merge_source_branch: Optional[str] = None
    is_merge_commit: bool = False
    is_main_branch: bool = False
    pull_request_url: str = ""
    pull_request_number: Optional[int] = None
    pull_request_title: Optional[str] = None
    reviewer: Optional[str] = None
    review_state: Optional[str] = None

    @property
    def has_pull_request_context(self) -> bool:
        return self.event_kind in (EventKind.PULL_REQUEST, EventKind.PULL_REQUEST_REVIEW)


class TrackingIdentity(BaseModel):
    """Stable key used to locate or create a board item."""

    canonical_name: str
    secondary_name: Optional[str] = None

    def lookup_names(self) -> list[str]:
        """Names to try on the board, in order."""
        names = [self.canonical_name]
        if self.secondary_name and self.secondary_name != self.canonical_name:
            names.append(self.secondary_name)
        return names
