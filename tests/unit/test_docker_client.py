"""
Unit tests for the docker CLI client.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pipeline_sync.services.docker_client import (
    DockerCLIClient,
    format_ports,
    format_started_at,
    parse_container_list,
    parse_inspect,
)
from pipeline_sync.services.errors import ContainerRuntimeError


INSPECT_DOCUMENT = [{
    "Id": "0123456789abcdef0123",
    "Name": "/widget-api-prod",
    "State": {
        "Status": "running",
        "StartedAt": "2026-01-15T10:00:00.123456789Z",
        "Health": {"Status": "healthy"},
    },
    "Config": {"Image": "acme/widget-api:1.4.2"},
    "NetworkSettings": {"Ports": {"8080/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8080"}]}},
}]


def fake_process(stdout: str = "", stderr: str = "", returncode: int = 0) -> MagicMock:
    process = MagicMock()
    process.communicate = AsyncMock(return_value=(stdout.encode(), stderr.encode()))
    process.returncode = returncode
    return process


class TestParsing:
    """Test docker output parsing."""

    def test_parse_container_list(self):
        output = "widget-api-prod|Up 5 minutes|acme/widget-api:1.4.2\n\nredis|Exited (0) 2 days ago|redis:7\n"

        containers = parse_container_list(output)

        assert [c.name for c in containers] == ["widget-api-prod", "redis"]
        assert containers[1].status == "Exited (0) 2 days ago"
        assert containers[1].image == "redis:7"

    def test_format_ports(self):
        assert format_ports(None) == "No ports exposed"
        assert format_ports({"80/tcp": None}) == "80/tcp"
        assert format_ports(INSPECT_DOCUMENT[0]["NetworkSettings"]["Ports"]) == "8080/tcp -> 0.0.0.0:8080"

    def test_format_started_at(self):
        assert format_started_at("2026-01-15T10:00:00.123Z") == "2026-01-15 10:00:00"
        assert format_started_at("0001-01-01T00:00:00Z") == "N/A"
        assert format_started_at(None) == "N/A"

    def test_parse_inspect(self):
        record = parse_inspect("widget-api-prod", json.dumps(INSPECT_DOCUMENT))

        assert record.name == "widget-api-prod"
        assert record.status == "running"
        assert record.container_id == "0123456789ab"
        assert record.image_version == "acme/widget-api:1.4.2"
        assert record.health == "healthy"
        assert record.deployed_at == "2026-01-15 10:00:00"

    def test_parse_inspect_without_healthcheck(self):
        document = [{"Name": "/worker", "State": {"Status": "exited"}}]

        record = parse_inspect("worker", json.dumps(document))

        assert record.health == "unknown"
        assert record.exposed_ports == "No ports exposed"

    @pytest.mark.parametrize("output", ["not json", "[]", "{}"])
    def test_parse_inspect_invalid(self, output):
        with pytest.raises(ContainerRuntimeError):
            parse_inspect("widget-api", output)


class TestDockerCLIClient:
    """Test subprocess handling with a mocked docker binary."""

    @pytest.mark.asyncio
    async def test_list(self):
        process = fake_process(stdout="widget-api-prod|Up 5 minutes|acme/widget-api:1.4.2\n")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as exec_mock:
            containers = await DockerCLIClient().list()

        assert containers[0].name == "widget-api-prod"
        assert exec_mock.call_args.args[:3] == ("docker", "ps", "-a")

    @pytest.mark.asyncio
    async def test_inspect_samples_resource_usage(self):
        inspect = fake_process(stdout=json.dumps(INSPECT_DOCUMENT))
        stats = fake_process(stdout="CPU: 0.50% | Memory: 64MiB / 1GiB\n")

        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=[inspect, stats])):
            record = await DockerCLIClient().inspect("widget-api-prod")

        assert record.resource_usage == "CPU: 0.50% | Memory: 64MiB / 1GiB"

    @pytest.mark.asyncio
    async def test_inspect_tolerates_stats_failure(self):
        inspect = fake_process(stdout=json.dumps(INSPECT_DOCUMENT))
        stats = fake_process(stderr="stats unavailable", returncode=1)

        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=[inspect, stats])):
            record = await DockerCLIClient().inspect("widget-api-prod")

        assert record.resource_usage == "N/A"

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises(self):
        process = fake_process(stderr="Error: No such container: ghost", returncode=1)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ContainerRuntimeError) as exc_info:
                await DockerCLIClient().stop("ghost")

        assert "No such container" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError("docker"))):
            with pytest.raises(ContainerRuntimeError):
                await DockerCLIClient().list()

    @pytest.mark.asyncio
    async def test_logs_passes_tail(self):
        process = fake_process(stdout="line 1\nline 2\n")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as exec_mock:
            output = await DockerCLIClient().logs("widget-api-prod", lines=2)

        assert output == "line 1\nline 2\n"
        assert exec_mock.call_args.args == ("docker", "logs", "--tail", "2", "widget-api-prod")

    @pytest.mark.asyncio
    async def test_logs_include_stderr_stream(self):
        process = MagicMock()
        process.communicate = AsyncMock(return_value=(b"GET /health 200\nWARN slow query\n", None))
        process.returncode = 0

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as exec_mock:
            output = await DockerCLIClient().logs("widget-api-prod")

        assert "WARN slow query" in output
        assert exec_mock.call_args.kwargs["stderr"] == asyncio.subprocess.STDOUT

    @pytest.mark.asyncio
    async def test_logs_of_missing_container_raises(self):
        process = MagicMock()
        process.communicate = AsyncMock(return_value=(b"Error: No such container: ghost\n", None))
        process.returncode = 1

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(ContainerRuntimeError, match="No such container"):
                await DockerCLIClient().logs("ghost")
