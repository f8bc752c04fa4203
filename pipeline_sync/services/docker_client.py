"""
Docker CLI client.

Runs docker commands as asyncio subprocesses. Output parsing lives in
plain functions so it can be tested without a docker daemon.
"""

import asyncio
import json
import time
from typing import Any, Dict, List, Optional

from pipeline_sync.models.container import ContainerRecord, ContainerSummary
from pipeline_sync.services.errors import ContainerRuntimeError
from pipeline_sync.utils.logging import get_logger, log_api_call

logger = get_logger(__name__)


LIST_FORMAT = "{{.Names}}|{{.Status}}|{{.Image}}"
STATS_FORMAT = "CPU: {{.CPUPerc}} | Memory: {{.MemUsage}}"

_ZERO_TIMESTAMP = "0001-01-01"


def parse_container_list(output: str) -> List[ContainerSummary]:
    """Parse `docker ps -a` output in LIST_FORMAT."""
    containers = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        name, _, rest = line.partition("|")
        status, _, image = rest.partition("|")
        containers.append(ContainerSummary(name=name, status=status, image=image))
    return containers


def format_ports(ports: Optional[Dict[str, Any]]) -> str:
    """
    Render NetworkSettings.Ports as 'container -> host' pairs.

    Example:
        {"80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8080"}]} -> "80/tcp -> 0.0.0.0:8080"
    """
    if not ports:
        return "No ports exposed"
    rendered = []
    for container_port, bindings in ports.items():
        if not bindings:
            rendered.append(container_port)
            continue
        for binding in bindings:
            rendered.append(
                f"{container_port} -> {binding.get('HostIp', '')}:{binding.get('HostPort', '')}"
            )
    return ", ".join(rendered)


def format_started_at(timestamp: Optional[str]) -> str:
    """Render an RFC 3339 start time as 'YYYY-MM-DD HH:MM:SS'."""
    if not timestamp or timestamp.startswith(_ZERO_TIMESTAMP):
        return "N/A"
    return timestamp.replace("T", " ")[:19]


def parse_inspect(name: str, output: str) -> ContainerRecord:
    """
    Parse `docker inspect` output into a ContainerRecord.

    Raises:
        ContainerRuntimeError: If the output is not an inspect document
    """
    try:
        documents = json.loads(output)
    except ValueError as e:
        raise ContainerRuntimeError(f"Unparseable docker inspect output for {name}") from e
    if not isinstance(documents, list) or not documents:
        raise ContainerRuntimeError(f"docker inspect returned nothing for {name}")

    document = documents[0]
    state = document.get("State") or {}
    status = state.get("Status") or "unknown"

    health = (state.get("Health") or {}).get("Status")
    if not health:
        # No healthcheck defined
        health = "running" if status == "running" else "unknown"

    return ContainerRecord(
        name=(document.get("Name") or name).lstrip("/"),
        status=status,
        container_id=(document.get("Id") or "N/A")[:12],
        image_version=(document.get("Config") or {}).get("Image") or "unknown",
        exposed_ports=format_ports((document.get("NetworkSettings") or {}).get("Ports")),
        health=health,
        deployed_at=format_started_at(state.get("StartedAt")),
    )


class DockerCLIClient:
    """Container runtime client backed by the docker CLI."""

    def __init__(self, binary: str = "docker", timeout: float = 30.0):
        """
        Initialize the client.

        Args:
            binary: docker executable
            timeout: Per-command timeout in seconds
        """
        self._binary = binary
        self._timeout = timeout

    async def _run(self, *args: str, merge_stderr: bool = False) -> str:
        """
        Run a docker command and return its stdout, with stderr interleaved
        when merge_stderr is set.

        Raises:
            ContainerRuntimeError: If the command fails, is missing, or times out
        """
        command = f"{self._binary} {' '.join(args)}"
        start = time.perf_counter()
        try:
            process = await asyncio.create_subprocess_exec(
                self._binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE,
            )
        except OSError as e:
            log_api_call(logger, "docker", command, args[0], error=str(e))
            raise ContainerRuntimeError(f"Cannot run {self._binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            log_api_call(logger, "docker", command, args[0], error="timeout")
            raise ContainerRuntimeError(f"{command} timed out after {self._timeout}s") from e

        duration_ms = (time.perf_counter() - start) * 1000
        if process.returncode != 0:
            message = (stderr or stdout).decode(errors="replace").strip() or f"exit code {process.returncode}"
            log_api_call(logger, "docker", command, args[0], duration_ms=duration_ms, error=message)
            raise ContainerRuntimeError(f"{command} failed: {message}")

        log_api_call(logger, "docker", command, args[0], duration_ms=duration_ms)
        return stdout.decode(errors="replace")

    async def list(self) -> List[ContainerSummary]:
        """List all containers, running or not."""
        output = await self._run("ps", "-a", "--format", LIST_FORMAT)
        return parse_container_list(output)

    async def resource_usage(self, name: str) -> str:
        output = await self._run("stats", name, "--no-stream", "--format", STATS_FORMAT)
        return output.strip() or "N/A"

    async def inspect(self, name: str) -> ContainerRecord:
        """
        Inspect a container, including a one-shot resource usage sample.

        Resource usage is best-effort; a stopped container reports 'N/A'.

        Raises:
            ContainerRuntimeError: If the container cannot be inspected
        """
        record = parse_inspect(name, await self._run("inspect", name))
        if record.status == "running":
            try:
                record.resource_usage = await self.resource_usage(name)
            except ContainerRuntimeError as e:
                logger.warning(f"Could not sample resource usage of {name}: {e}")
        return record

    async def start(self, name: str) -> None:
        await self._run("start", name)
        logger.info(f"Container {name} started")

    async def stop(self, name: str) -> None:
        await self._run("stop", name)
        logger.info(f"Container {name} stopped")

    async def restart(self, name: str) -> None:
        await self._run("restart", name)
        logger.info(f"Container {name} restarted")

    async def logs(self, name: str, lines: int = 100) -> str:
        """Return the last lines of a container's stdout and stderr streams."""
        return await self._run("logs", "--tail", str(lines), name, merge_stderr=True)
