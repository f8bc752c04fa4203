"""
Unit tests for the GitHub client.
"""

import httpx
import pytest

from pipeline_sync.services.errors import GitHubClientError
from pipeline_sync.services.github_client import GitHubClient


def client_for(handler, token="gh-token") -> GitHubClient:
    return GitHubClient(token=token, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_get_pull_request_head():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"number": 8, "head": {"ref": "feature-x"}})

    head = await client_for(handler).get_pull_request_head("acme/widget-api", 8)

    assert head == "feature-x"
    assert requests[0].url.path == "/repos/acme/widget-api/pulls/8"
    assert requests[0].headers["authorization"] == "Bearer gh-token"


@pytest.mark.asyncio
async def test_get_pull_request_head_without_owner():
    client = client_for(lambda request: httpx.Response(500))

    assert await client.get_pull_request_head("widget-api", 8) is None


@pytest.mark.asyncio
async def test_anonymous_client_sends_no_authorization():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append("authorization" in request.headers)
        return httpx.Response(200, json={"full_name": "acme/widget-api"})

    data = await client_for(handler, token=None).get_repository("acme", "widget-api")

    assert data["full_name"] == "acme/widget-api"
    assert seen == [False]


@pytest.mark.asyncio
async def test_not_found_raises():
    client = client_for(lambda request: httpx.Response(404, json={"message": "Not Found"}))

    with pytest.raises(GitHubClientError) as exc_info:
        await client.get_commit("acme", "widget-api", "abc123")

    assert exc_info.value.status_code == 404
