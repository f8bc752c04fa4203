"""
GitHub client.

Authenticated GETs against the GitHub REST API, retried on transport errors.
"""

from typing import Any, Dict, Optional

import httpx

from pipeline_sync.services.errors import GitHubClientError
from pipeline_sync.utils.logging import get_logger
from pipeline_sync.utils.metrics import track_api_call
from pipeline_sync.utils.resilience import retry_with_backoff

logger = get_logger(__name__)


class GitHubClient:
    """Read-only client for repositories, commits and pull requests."""

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    @retry_with_backoff(max_retries=3, base_delay=1.0, exceptions=(httpx.TransportError,))
    async def _get(self, path: str) -> httpx.Response:
        async with track_api_call("github", path, "GET", logger):
            return await self._client.get(path)

    async def _get_json(self, path: str) -> Dict[str, Any]:
        try:
            response = await self._get(path)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise GitHubClientError(
                f"GitHub returned {e.response.status_code} for {path}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise GitHubClientError(f"GitHub request failed for {path}: {e}") from e
        except ValueError as e:
            raise GitHubClientError(f"GitHub returned invalid JSON for {path}") from e

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        return await self._get_json(f"/repos/{owner}/{repo}")

    async def get_commit(self, owner: str, repo: str, sha: str) -> Dict[str, Any]:
        return await self._get_json(f"/repos/{owner}/{repo}/commits/{sha}")

    async def get_pull_request(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        return await self._get_json(f"/repos/{owner}/{repo}/pulls/{number}")

    async def get_pull_request_head(self, full_name: str, number: int) -> Optional[str]:
        """
        Fetch the head branch of a pull request.

        Args:
            full_name: Repository as owner/repo
            number: Pull request number

        Returns:
            Head ref name, or None if the repository name is not owner/repo

        Raises:
            GitHubClientError: If the call fails
        """
        if "/" not in full_name:
            return None
        owner, repo = full_name.split("/", 1)
        data = await self.get_pull_request(owner, repo, number)
        return (data.get("head") or {}).get("ref") or None
