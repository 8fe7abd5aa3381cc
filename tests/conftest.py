"""
Pytest configuration and fixtures.

The fake runtime keeps containers in memory and reproduces the inspect,
list and log payloads of the Docker daemon closely enough for the engine.
"""
import asyncio
import itertools
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pytest
import pytest_asyncio

from atlas_local.config.settings import Settings
from atlas_local.services.deployment_engine import DeploymentEngine
from atlas_local.services.runtime_gateway import (
    ContainerConflict,
    ContainerNotFound,
    ContainerSpec,
    ExecResult,
    RuntimeGateway,
)

_BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def docker_timestamp(offset_ms: int) -> str:
    """Fixed-width RFC 3339 timestamp as written by the daemon."""
    moment = _BASE_TIME + timedelta(milliseconds=offset_ms)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%f") + "000Z"


class FakeContainer:
    def __init__(self, container_id: str, spec: ContainerSpec, image_labels: Mapping[str, str]):
        self.id = container_id
        self.name = spec.name
        self.image = spec.image
        self.labels = {**image_labels, **spec.labels}
        self.environment = dict(spec.environment)
        self.ports = dict(spec.ports)
        self.binds = dict(spec.binds)
        self.status = "created"
        self.exit_code = 0
        self.oom_killed = False
        self.error = ""
        self.health: Optional[str] = None
        self.inspects_until_healthy = 0
        self.host_port: Optional[int] = None
        # (stream, offset_ms, message)
        self.logs: List[Tuple[str, int, str]] = []
        self.files: Dict[str, str] = {}
        self.deployment_uuid = ""


class FakeRuntimeGateway(RuntimeGateway):
    """In-memory RuntimeGateway."""

    def __init__(self) -> None:
        self.containers: Dict[str, FakeContainer] = {}
        self.calls: List[Tuple[Any, ...]] = []
        self.failures: Dict[str, Exception] = {}
        self.image_labels: Dict[str, str] = {"version": "8.0.4", "mongodb-type": "community"}
        self.healthcheck = True
        self.healthy_after = 1
        # Publish on all interfaces as both IPv4 and IPv6 entries when requested
        self.dual_stack = True
        self.exit_code_on_start: Optional[int] = None
        self.closed = False
        self._ids = itertools.count(1)
        self._ports = itertools.count(32768)
        self._log_clock = itertools.count(0, 10)

    # -- helpers ---------------------------------------------------------

    def _maybe_fail(self, operation: str) -> None:
        error = self.failures.pop(operation, None)
        if error is not None:
            raise error

    def _get(self, ref: str) -> FakeContainer:
        if ref in self.containers:
            return self.containers[ref]
        for container in self.containers.values():
            if container.name == ref:
                return container
        raise ContainerNotFound(f"No such container: {ref}", status_code=404)

    def add_container(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None,
        status: str = "running",
        image: str = "mongo:8",
    ) -> FakeContainer:
        """Register a container not created through the gateway."""
        spec = ContainerSpec(name=name, image=image, labels=labels or {})
        container = FakeContainer(f"c{next(self._ids):063d}", spec, {})
        container.status = status
        self.containers[container.id] = container
        return container

    def write_log(self, ref: str, stream: str, message: str) -> None:
        self._get(ref).logs.append((stream, next(self._log_clock), message))

    # -- RuntimeGateway ---------------------------------------------------

    async def create_container(self, spec: ContainerSpec) -> str:
        self.calls.append(("create_container", spec.name))
        self._maybe_fail("create_container")
        if any(c.name == spec.name for c in self.containers.values()):
            raise ContainerConflict(f"Conflict. The container name /{spec.name} is already in use", 409)
        container = FakeContainer(f"{next(self._ids):064x}", spec, self.image_labels)
        self.containers[container.id] = container
        return container.id

    async def start_container(self, container: str) -> None:
        self.calls.append(("start_container", container))
        self._maybe_fail("start_container")
        target = self._get(container)
        if self.exit_code_on_start is not None:
            target.status = "exited"
            target.exit_code = self.exit_code_on_start
            return
        target.status = "running"
        if target.host_port is None:
            port = self.ports_for(target)
            target.host_port = port
        if self.healthcheck:
            target.health = "starting"
            target.inspects_until_healthy = self.healthy_after
            if self.healthy_after == 0:
                target.health = "healthy"
        self.write_log(container, "stdout", '{"msg":"Waiting for connections","attr":{"port":27017}}')

    def ports_for(self, target: FakeContainer) -> int:
        _, requested = target.ports.get("27017/tcp", ("127.0.0.1", None))
        return requested or next(self._ports)

    async def stop_container(self, container: str, timeout: Optional[int] = None) -> None:
        self.calls.append(("stop_container", container))
        self._maybe_fail("stop_container")
        target = self._get(container)
        target.status = "exited"
        target.exit_code = 143
        target.health = None

    async def pause_container(self, container: str) -> None:
        self.calls.append(("pause_container", container))
        self._maybe_fail("pause_container")
        self._get(container).status = "paused"

    async def unpause_container(self, container: str) -> None:
        self.calls.append(("unpause_container", container))
        self._maybe_fail("unpause_container")
        self._get(container).status = "running"

    async def remove_container(self, container: str, force: bool = False) -> None:
        self.calls.append(("remove_container", container))
        self._maybe_fail("remove_container")
        target = self._get(container)
        del self.containers[target.id]

    async def inspect_container(self, container: str) -> Dict[str, Any]:
        self.calls.append(("inspect_container", container))
        self._maybe_fail("inspect_container")
        target = self._get(container)

        if target.health == "starting" and target.status == "running":
            target.inspects_until_healthy -= 1
            if target.inspects_until_healthy <= 0:
                target.health = "healthy"

        state: Dict[str, Any] = {
            "Status": target.status,
            "Running": target.status == "running",
            "Paused": target.status == "paused",
            "ExitCode": target.exit_code,
            "OOMKilled": target.oom_killed,
            "Error": target.error,
        }
        if target.health is not None:
            state["Health"] = {"Status": target.health}

        ports: Dict[str, Any] = {}
        if target.status in ("running", "paused") and target.host_port is not None:
            host_ip, _ = target.ports.get("27017/tcp", ("127.0.0.1", None))
            bindings = [{"HostIp": host_ip, "HostPort": str(target.host_port)}]
            if host_ip == "0.0.0.0" and self.dual_stack:
                bindings.append({"HostIp": "::", "HostPort": str(target.host_port)})
            ports["27017/tcp"] = bindings

        return {
            "Id": target.id,
            "Name": f"/{target.name}",
            "Created": "2026-01-01T00:00:00.123456789Z",
            "Config": {
                "Image": target.image,
                "Labels": dict(target.labels),
                "Env": [f"{k}={v}" for k, v in target.environment.items()] + ["PATH=/usr/bin"],
            },
            "State": state,
            "NetworkSettings": {"Ports": ports},
            "Mounts": [
                {"Type": "bind", "Source": host, "Destination": dest, "Mode": mode}
                for host, (dest, mode) in target.binds.items()
            ],
        }

    async def container_logs(
        self,
        container: str,
        stdout: bool = True,
        stderr: bool = True,
        timestamps: bool = False,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        tail: Union[str, int] = "all",
    ) -> bytes:
        self.calls.append(("container_logs", container))
        self._maybe_fail("container_logs")
        target = self._get(container)
        selected = [
            (offset, message)
            for stream, offset, message in target.logs
            if (stream == "stdout" and stdout) or (stream == "stderr" and stderr)
        ]
        if tail != "all":
            selected = selected[-tail:] if tail else []
        lines = [
            f"{docker_timestamp(offset)} {message}" if timestamps else message
            for offset, message in selected
        ]
        return "".join(line + "\n" for line in lines).encode("utf-8")

    async def list_containers(self, labels: Mapping[str, str]) -> List[Dict[str, Any]]:
        self.calls.append(("list_containers", dict(labels)))
        self._maybe_fail("list_containers")
        return [
            {"Id": c.id, "Names": [f"/{c.name}"], "Labels": dict(c.labels), "State": c.status}
            for c in self.containers.values()
            if all(c.labels.get(k) == v for k, v in labels.items())
        ]

    async def pull_image(self, image: str, tag: str) -> None:
        self.calls.append(("pull_image", image, tag))
        self._maybe_fail("pull_image")

    async def exec_in_container(self, container: str, command: Sequence[str]) -> ExecResult:
        self.calls.append(("exec_in_container", container, list(command)))
        self._maybe_fail("exec_in_container")
        target = self._get(container)
        if command[0] == "cat":
            if command[1] not in target.files:
                return ExecResult(exit_code=1, stderr=f"cat: {command[1]}: No such file".encode())
            return ExecResult(exit_code=0, stdout=target.files[command[1]].encode())
        if command[0] == "mongosh":
            output = f"{target.deployment_uuid}\n" if target.deployment_uuid else ""
            return ExecResult(exit_code=0, stdout=output.encode())
        return ExecResult(exit_code=127, stderr=b"command not found")

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Clock that advances only when slept on."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def test_settings() -> Settings:
    """Settings for testing."""
    return Settings(
        environment="testing",
        health_poll_interval=1.0,
        health_check_timeout=30.0,
        runtime_max_retries=0,
        pull_max_attempts=1,
    )


@pytest.fixture
def fake_runtime() -> FakeRuntimeGateway:
    return FakeRuntimeGateway()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def engine(fake_runtime, fake_clock, test_settings):
    """Deployment engine wired to the fake runtime."""
    engine = DeploymentEngine(
        fake_runtime,
        config=test_settings,
        clock=fake_clock,
        rng=random.Random(42),
    )
    yield engine
    await engine.close()
