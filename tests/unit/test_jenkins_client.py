"""
Unit tests for the Jenkins client.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from pipeline_sync.models.build import BuildState
from pipeline_sync.services.errors import CIClientError
from pipeline_sync.services.jenkins_client import (
    JenkinsClient,
    parse_build_state,
    parse_stages,
    parse_test_report,
)


BUILD_DOCUMENT = {
    "number": 12,
    "url": "http://ci.example.com/job/widget-api/12/",
    "building": False,
    "result": "SUCCESS",
    "duration": 93000,
}


def client_for(handler) -> JenkinsClient:
    return JenkinsClient(
        "http://ci.example.com/",
        username="ci-bot",
        api_token="secret",
        transport=httpx.MockTransport(handler),
    )


class TestParsing:
    """Test Jenkins document parsing."""

    @pytest.mark.parametrize("data,expected", [
        ({"building": True, "result": None}, BuildState.BUILDING),
        ({"building": False, "result": None}, BuildState.QUEUED),
        ({"building": False, "result": "SUCCESS"}, BuildState.SUCCESS),
        ({"building": False, "result": "FAILURE"}, BuildState.FAILED),
        ({"building": False, "result": "UNSTABLE"}, BuildState.UNSTABLE),
        ({"building": False, "result": "ABORTED"}, BuildState.ABORTED),
        ({"building": False, "result": "NOT_BUILT"}, BuildState.ABORTED),
        ({"building": False, "result": "EXPLODED"}, BuildState.FAILED),
    ])
    def test_parse_build_state(self, data, expected):
        assert parse_build_state(data) == expected

    def test_parse_stages(self):
        stages = parse_stages({"stages": [
            {"name": "Checkout", "status": "SUCCESS", "durationMillis": 1200},
            {"name": "Unit Tests", "status": "FAILED"},
        ]})

        assert [s.name for s in stages] == ["Checkout", "Unit Tests"]
        assert stages[0].duration_ms == 1200
        assert stages[0].succeeded
        assert not stages[1].succeeded

    def test_parse_stages_without_stages(self):
        assert parse_stages({}) == []

    def test_parse_test_report(self):
        report = parse_test_report({"totalCount": 10, "failCount": 2, "skipCount": 1, "passCount": 7})

        assert (report.total, report.passed, report.failed, report.skipped) == (10, 7, 2, 1)

    def test_parse_test_report_computes_passed(self):
        report = parse_test_report({"totalCount": 10, "failCount": 2, "skipCount": 1})

        assert report.passed == 7


class TestJenkinsClient:
    """Test HTTP behaviour against a mock transport."""

    @pytest.mark.asyncio
    async def test_get_last_build(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=BUILD_DOCUMENT)

        client = client_for(handler)
        record = await client.get_last_build("widget-api")
        await client.close()

        assert record.build_number == 12
        assert record.state == BuildState.SUCCESS
        assert record.duration_ms == 93000
        assert requests[0].url.path == "/job/widget-api/lastBuild/api/json"
        assert requests[0].headers["authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_http_error_raises_ci_error(self):
        client = client_for(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(CIClientError) as exc_info:
            await client.get_build("widget-api", 12)

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_missing_test_report_returns_none(self):
        client = client_for(lambda request: httpx.Response(404))

        assert await client.get_test_report("widget-api", 12) is None

    @pytest.mark.asyncio
    async def test_get_stages(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/job/widget-api/12/wfapi/describe"
            return httpx.Response(200, json={"stages": [{"name": "Build", "status": "SUCCESS"}]})

        stages = await client_for(handler).get_stages("widget-api", 12)

        assert stages[0].name == "Build"

    @pytest.mark.asyncio
    async def test_freestyle_job_has_no_stages(self):
        client = client_for(lambda request: httpx.Response(404))

        assert await client.get_stages("widget-api", 12) == []

    @pytest.mark.asyncio
    async def test_stage_fetch_server_error_raises(self):
        client = client_for(lambda request: httpx.Response(500))

        with pytest.raises(CIClientError):
            await client.get_stages("widget-api", 12)

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused")
            return httpx.Response(200, json=BUILD_DOCUMENT)

        with patch("pipeline_sync.utils.resilience.asyncio.sleep", AsyncMock()):
            record = await client_for(handler).get_build("widget-api", 12)

        assert record.build_number == 12
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_get_console_output(self):
        client = client_for(lambda request: httpx.Response(200, text="Started by user\nFinished: SUCCESS\n"))

        output = await client.get_console_output("widget-api", 12)

        assert output.endswith("Finished: SUCCESS\n")

    @pytest.mark.asyncio
    async def test_trigger_build(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, headers={"Location": "http://ci.example.com/queue/item/7/"})

        queue_url = await client_for(handler).trigger_build(
            "widget-api",
            {"BRANCH_NAME": "feature-x", "COMMIT_MESSAGE": "Add widget", "PR_URL": ""},
        )

        assert queue_url == "http://ci.example.com/queue/item/7/"
        params = requests[0].url.params
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/job/widget-api/buildWithParameters"
        assert params["BRANCH_NAME"] == "feature-x"
        assert params["cause"] == "Triggered by GitHub webhook: Add widget"
        assert "PR_URL" not in params

    @pytest.mark.asyncio
    async def test_trigger_build_rejected(self):
        client = client_for(lambda request: httpx.Response(403))

        with pytest.raises(CIClientError) as exc_info:
            await client.trigger_build("widget-api")

        assert exc_info.value.status_code == 403
