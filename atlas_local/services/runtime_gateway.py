"""
Runtime Gateway - primitive container operations against the Docker daemon.

The engine only talks to the abstract RuntimeGateway; DockerRuntimeGateway runs
the blocking docker SDK calls in a thread pool so the event loop never blocks.
"""
import asyncio
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import docker
import requests
from docker.errors import APIError, DockerException, ImageNotFound, NotFound
from pydantic import BaseModel, ConfigDict, Field
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from atlas_local.config.logging import get_logger
from atlas_local.config.settings import Settings, settings as default_settings
from atlas_local.utils.retry import is_retryable_docker_error, retry_on_docker_error

logger = get_logger(__name__)

_DOCKER_ERRORS = (DockerException, requests.exceptions.RequestException)


class RuntimeGatewayError(Exception):
    """A container runtime call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ContainerNotFound(RuntimeGatewayError):
    """The runtime does not know the container (or image)."""


class ContainerConflict(RuntimeGatewayError):
    """The runtime refused the call because of a conflicting container (HTTP 409)."""


class ContainerSpec(BaseModel):
    """Everything needed to create a deployment container."""

    model_config = ConfigDict(frozen=True)

    name: str
    image: str
    labels: Dict[str, str] = Field(default_factory=dict)
    environment: Dict[str, str] = Field(default_factory=dict)
    # "27017/tcp" -> (host_ip, host_port or None for runtime-assigned)
    ports: Dict[str, Tuple[str, Optional[int]]] = Field(default_factory=dict)
    # host path -> (container path, mode)
    binds: Dict[str, Tuple[str, str]] = Field(default_factory=dict)


class ExecResult(BaseModel):
    """Outcome of a command run inside a container."""

    model_config = ConfigDict(frozen=True)

    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""


class RuntimeGateway(ABC):
    """
    Abstract capability for primitive container operations.

    Implementations raise ContainerNotFound, ContainerConflict or
    RuntimeGatewayError; they keep no per-deployment state.
    """

    @abstractmethod
    async def create_container(self, spec: ContainerSpec) -> str:
        """Create a container and return its id."""

    @abstractmethod
    async def start_container(self, container: str) -> None:
        ...

    @abstractmethod
    async def stop_container(self, container: str, timeout: Optional[int] = None) -> None:
        ...

    @abstractmethod
    async def pause_container(self, container: str) -> None:
        ...

    @abstractmethod
    async def unpause_container(self, container: str) -> None:
        ...

    @abstractmethod
    async def remove_container(self, container: str, force: bool = False) -> None:
        ...

    @abstractmethod
    async def inspect_container(self, container: str) -> Dict[str, Any]:
        """Return the full inspect payload of a container."""

    @abstractmethod
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
        """Return raw log output of the selected streams."""

    @abstractmethod
    async def list_containers(self, labels: Mapping[str, str]) -> List[Dict[str, Any]]:
        """List containers, stopped ones included, carrying all given labels."""

    @abstractmethod
    async def pull_image(self, image: str, tag: str) -> None:
        ...

    @abstractmethod
    async def exec_in_container(self, container: str, command: Sequence[str]) -> ExecResult:
        ...

    async def close(self) -> None:
        """Release runtime resources."""


class DockerRuntimeGateway(RuntimeGateway):
    """
    RuntimeGateway backed by the docker SDK.

    Idempotent reads (inspect, list, logs) are retried on transient daemon
    errors; image pulls are retried with tenacity. Mutations are never retried.
    """

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        config: Optional[Settings] = None,
    ):
        self._settings = config or default_settings
        if client is None:
            if self._settings.docker_base_url:
                client = docker.DockerClient(
                    base_url=self._settings.docker_base_url,
                    timeout=self._settings.docker_timeout,
                )
            else:
                client = docker.from_env(timeout=self._settings.docker_timeout)
        self._client = client
        self._executor = ThreadPoolExecutor(
            max_workers=self._settings.runtime_workers,
            thread_name_prefix="atlas-local-runtime",
        )
        self._max_retries = self._settings.runtime_max_retries
        self._closed = False

    async def _run(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run blocking function in thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, lambda: func(*args, **kwargs))

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return await self._run(func, *args, **kwargs)
        except _DOCKER_ERRORS as e:
            raise _translate_error(operation, e) from e

    async def _read(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        run = retry_on_docker_error(max_retries=self._max_retries)(self._run)
        try:
            return await run(func, *args, **kwargs)
        except _DOCKER_ERRORS as e:
            raise _translate_error(operation, e) from e

    async def create_container(self, spec: ContainerSpec) -> str:
        volumes = {
            host: {"bind": target, "mode": mode}
            for host, (target, mode) in spec.binds.items()
        }
        container = await self._call(
            "create_container",
            self._client.containers.create,
            image=spec.image,
            name=spec.name,
            labels=dict(spec.labels),
            environment=dict(spec.environment),
            ports=dict(spec.ports),
            volumes=volumes or None,
            detach=True,
        )
        logger.info("container_created", name=spec.name, container_id=container.id, image=spec.image)
        return container.id

    async def start_container(self, container: str) -> None:
        await self._call("start_container", self._client.api.start, container)

    async def stop_container(self, container: str, timeout: Optional[int] = None) -> None:
        stop_timeout = self._settings.stop_timeout if timeout is None else timeout
        await self._call("stop_container", self._client.api.stop, container, timeout=stop_timeout)

    async def pause_container(self, container: str) -> None:
        await self._call("pause_container", self._client.api.pause, container)

    async def unpause_container(self, container: str) -> None:
        await self._call("unpause_container", self._client.api.unpause, container)

    async def remove_container(self, container: str, force: bool = False) -> None:
        await self._call("remove_container", self._client.api.remove_container, container, force=force)

    async def inspect_container(self, container: str) -> Dict[str, Any]:
        return await self._read("inspect_container", self._client.api.inspect_container, container)

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
        return await self._read(
            "container_logs",
            self._client.api.logs,
            container,
            stdout=stdout,
            stderr=stderr,
            timestamps=timestamps,
            since=since,
            until=until,
            tail=tail,
            stream=False,
        )

    async def list_containers(self, labels: Mapping[str, str]) -> List[Dict[str, Any]]:
        filters = {"label": [f"{key}={value}" for key, value in labels.items()]}
        return await self._read("list_containers", self._client.api.containers, all=True, filters=filters)

    async def pull_image(self, image: str, tag: str) -> None:
        logger.info("pulling_image", image=image, tag=tag)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.pull_max_attempts),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                retry=retry_if_exception(is_retryable_docker_error),
                reraise=True,
            ):
                with attempt:
                    await self._run(self._client.images.pull, image, tag=tag)
        except _DOCKER_ERRORS as e:
            raise _translate_error("pull_image", e) from e
        logger.info("image_pulled", image=image, tag=tag)

    async def exec_in_container(self, container: str, command: Sequence[str]) -> ExecResult:
        def _exec() -> ExecResult:
            exec_id = self._client.api.exec_create(container, list(command), stdout=True, stderr=True)["Id"]
            output = self._client.api.exec_start(exec_id, demux=True)
            exit_code = self._client.api.exec_inspect(exec_id).get("ExitCode")
            out, err = output if output else (None, None)
            return ExecResult(exit_code=exit_code or 0, stdout=out or b"", stderr=err or b"")

        return await self._call("exec_in_container", _exec)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=False)
        self._client.close()
        logger.debug("runtime_gateway_closed")


def _translate_error(operation: str, error: Exception) -> RuntimeGatewayError:
    """Map docker SDK errors to gateway errors."""
    if isinstance(error, (NotFound, ImageNotFound)):
        return ContainerNotFound(str(error), status_code=404)
    if isinstance(error, APIError):
        if error.status_code == 409:
            return ContainerConflict(str(error), status_code=409)
        return RuntimeGatewayError(str(error), status_code=error.status_code)
    return RuntimeGatewayError(f"{operation}: {error}")
