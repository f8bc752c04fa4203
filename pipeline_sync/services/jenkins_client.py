"""
Jenkins client.

Thin httpx wrapper over the Jenkins JSON API. Idempotent reads are retried
on transport errors; build triggers are not.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from pipeline_sync.models.build import BuildRecord, BuildState, CITestReport, StageResult
from pipeline_sync.services.errors import CIClientError
from pipeline_sync.utils.logging import get_logger
from pipeline_sync.utils.metrics import track_api_call
from pipeline_sync.utils.resilience import retry_with_backoff

logger = get_logger(__name__)


# Jenkins build result -> build state
RESULT_STATES: Dict[str, BuildState] = {
    "SUCCESS": BuildState.SUCCESS,
    "FAILURE": BuildState.FAILED,
    "UNSTABLE": BuildState.UNSTABLE,
    "ABORTED": BuildState.ABORTED,
    "NOT_BUILT": BuildState.ABORTED,
}


def parse_build_state(data: Dict[str, Any]) -> BuildState:
    """
    Derive the build state from a Jenkins build document.

    Args:
        data: JSON body of /job/<job>/<n>/api/json

    Returns:
        BuildState; unknown terminal results map to FAILED
    """
    if data.get("building"):
        return BuildState.BUILDING
    result = data.get("result")
    if result is None:
        return BuildState.QUEUED
    return RESULT_STATES.get(str(result).upper(), BuildState.FAILED)


def parse_build(job_name: str, data: Dict[str, Any]) -> BuildRecord:
    return BuildRecord(
        job_name=job_name,
        build_number=int(data.get("number", 0)),
        build_url=data.get("url") or "",
        state=parse_build_state(data),
        duration_ms=int(data.get("duration") or 0),
    )


def parse_stages(data: Dict[str, Any]) -> List[StageResult]:
    return [
        StageResult(
            name=stage.get("name") or "Unnamed stage",
            status=stage.get("status") or "UNKNOWN",
            duration_ms=int(stage.get("durationMillis") or 0),
        )
        for stage in data.get("stages") or []
    ]


def parse_test_report(data: Dict[str, Any]) -> CITestReport:
    total = int(data.get("totalCount") or 0)
    failed = int(data.get("failCount") or 0)
    skipped = int(data.get("skipCount") or 0)
    passed = data.get("passCount")
    return CITestReport(
        total=total,
        passed=int(passed) if passed is not None else max(total - failed - skipped, 0),
        failed=failed,
        skipped=skipped,
    )


class JenkinsClient:
    """Client for the Jenkins REST API using basic auth."""

    def __init__(
        self,
        base_url: str,
        username: str = "",
        api_token: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the Jenkins client.

        Args:
            base_url: Jenkins root URL
            username: Jenkins user
            api_token: Jenkins API token
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        auth = httpx.BasicAuth(username, api_token) if username else None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _job_path(job_name: str) -> str:
        return f"/job/{quote(job_name, safe='')}"

    @retry_with_backoff(max_retries=3, base_delay=1.0, exceptions=(httpx.TransportError,))
    async def _get(self, path: str) -> httpx.Response:
        async with track_api_call("jenkins", path, "GET", logger):
            return await self._client.get(path)

    async def _request(self, path: str) -> httpx.Response:
        try:
            response = await self._get(path)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            raise CIClientError(
                f"Jenkins returned {e.response.status_code} for {path}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise CIClientError(f"Jenkins request failed for {path}: {e}") from e

    async def _get_json(self, path: str) -> Dict[str, Any]:
        response = await self._request(path)
        try:
            return response.json()
        except ValueError as e:
            raise CIClientError(f"Jenkins returned invalid JSON for {path}") from e

    async def get_job(self, job_name: str) -> Dict[str, Any]:
        """Fetch the raw job document."""
        return await self._get_json(f"{self._job_path(job_name)}/api/json")

    async def get_last_build(self, job_name: str) -> BuildRecord:
        """
        Fetch the most recent build of a job.

        Raises:
            CIClientError: If the job has no builds or the call fails
        """
        data = await self._get_json(f"{self._job_path(job_name)}/lastBuild/api/json")
        return parse_build(job_name, data)

    async def get_build(self, job_name: str, build_number: int) -> BuildRecord:
        data = await self._get_json(f"{self._job_path(job_name)}/{build_number}/api/json")
        return parse_build(job_name, data)

    async def get_stages(self, job_name: str, build_number: int) -> List[StageResult]:
        """
        Fetch ordered pipeline stages from the workflow API.

        Returns:
            Stages in execution order; empty for jobs without the workflow API
        """
        try:
            data = await self._get_json(f"{self._job_path(job_name)}/{build_number}/wfapi/describe")
        except CIClientError as e:
            if e.status_code == 404:
                return []
            raise
        return parse_stages(data)

    async def get_test_report(self, job_name: str, build_number: int) -> Optional[CITestReport]:
        """
        Fetch aggregate test counts.

        Returns:
            CITestReport, or None if the build published no test report
        """
        try:
            data = await self._get_json(f"{self._job_path(job_name)}/{build_number}/testReport/api/json")
        except CIClientError as e:
            if e.status_code == 404:
                return None
            raise
        return parse_test_report(data)

    async def get_console_output(self, job_name: str, build_number: int) -> str:
        response = await self._request(f"{self._job_path(job_name)}/{build_number}/consoleText")
        return response.text

    async def trigger_build(
        self,
        job_name: str,
        parameters: Optional[Dict[str, str]] = None
    ) -> Optional[str]:
        """
        Trigger a parameterized build.

        A 'cause' parameter is added unless given. Empty parameters are dropped.

        Args:
            job_name: Jenkins job
            parameters: Build parameters

        Returns:
            Queue item URL from the Location header, if any

        Raises:
            CIClientError: If the trigger fails
        """
        parameters = dict(parameters or {})
        params = {
            "cause": f"Triggered by GitHub webhook: {parameters.get('COMMIT_MESSAGE') or 'Manual trigger'}",
            **parameters,
        }
        params = {key: value for key, value in params.items() if value}

        path = f"{self._job_path(job_name)}/buildWithParameters"
        try:
            async with track_api_call("jenkins", path, "POST", logger):
                response = await self._client.post(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CIClientError(
                f"Jenkins rejected build trigger for {job_name}: {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise CIClientError(f"Failed to trigger build for {job_name}: {e}") from e

        queue_url = response.headers.get("location")
        logger.info(
            f"Triggered build for {job_name}",
            extra={"job_name": job_name, "queue_url": queue_url}
        )
        return queue_url
