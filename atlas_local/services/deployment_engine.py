"""
Deployment Engine - lifecycle operations for local MongoDB deployments.

Every operation follows the same sequence: resolve the deployment, validate
the requested operation against its observed status, take the per-deployment
lock, call the runtime, then re-observe and confirm the target status. The
runtime is the source of truth between operations; the engine only keeps the
intermediate status of operations it is currently running.
"""
import asyncio
import os
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from pymongo.errors import PyMongoError

from atlas_local.config.logging import get_logger
from atlas_local.config.settings import Settings, settings as default_settings
from atlas_local.core.lock_manager import LockManager
from atlas_local.core.state_machine import DeploymentStateMachine, DeploymentStatus, OperationType, observe
from atlas_local.exceptions import (
    ConfigurationInvalid,
    CreationFailed,
    HealthCheckFailed,
    HealthCheckTimeout,
    NotFound,
    NotRunning,
    RuntimeOperationFailed,
    StartFailed,
)
from atlas_local.models import deployment as labels
from atlas_local.models.deployment import Deployment, creation_source_value, is_managed
from atlas_local.models.logs import LogLine, LogsOptions
from atlas_local.models.options import CreateDeploymentOptions, generate_deployment_name
from atlas_local.models.progress import CreationProgress, CreationStep, StepOutcome
from atlas_local.services.connection_string import ConnectionStringBuilder
from atlas_local.services.health_poller import HealthOutcome, HealthPoller
from atlas_local.services.log_collector import LogCollector
from atlas_local.services.port_resolver import PortResolver, to_docker_binding
from atlas_local.services.runtime_gateway import (
    ContainerConflict,
    ContainerNotFound,
    ContainerSpec,
    RuntimeGateway,
    RuntimeGatewayError,
)
from atlas_local.utils.clock import Clock, SystemClock

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

# mongod address inside the container, used by in-container commands
_IN_CONTAINER_URI = "mongodb://127.0.0.1:27017/?directConnection=true"
_DEPLOYMENT_ID_EVAL = "db.getSiblingDB('admin').atlascli.findOne()?.uuid"


class DeploymentEngine:
    """
    Lifecycle operations for local deployments.

    Operations on the same deployment are serialized; different deployments
    proceed concurrently.

    Usage:
        >>> engine = DeploymentEngine(DockerRuntimeGateway())
        >>> deployment = await engine.create_deployment({"name": "local1"})
        >>> uri = await engine.get_connection_string("local1")
        >>> await engine.delete_deployment("local1")
    """

    def __init__(
        self,
        runtime: RuntimeGateway,
        config: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        lock_manager: Optional[LockManager] = None,
        port_resolver: Optional[PortResolver] = None,
    ):
        self.runtime = runtime
        self.settings = config or default_settings
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.locks = lock_manager or LockManager()
        self.port_resolver = port_resolver or PortResolver()
        self.health_poller = HealthPoller(runtime, clock=self.clock, config=self.settings)
        self.log_collector = LogCollector(runtime)
        # deployment name -> status of the operation this engine is running
        self._in_flight: Dict[str, DeploymentStatus] = {}

    async def __aenter__(self) -> "DeploymentEngine":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_deployment(
        self,
        options: Union[CreateDeploymentOptions, Mapping[str, Any], None] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Deployment:
        """
        Create and start a deployment.

        Args:
            options: Creation options, or a mapping validated into them
            cancel_event: Event that aborts the health wait when set

        Returns:
            Snapshot of the started deployment

        Raises:
            ConfigurationInvalid: If the options are invalid
            CreationFailed: If the name is taken, or pulling or creating fails
            StartFailed: If the container cannot be started
            HealthCheckTimeout: If the deployment is not healthy in time
        """
        opts = self._validate_create_options(options)
        return await self._create(opts, None, cancel_event)

    async def create_deployment_with_progress(
        self,
        options: Union[CreateDeploymentOptions, Mapping[str, Any], None] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CreationProgress:
        """
        Start a deployment creation in the background.

        Returns:
            CreationProgress exposing one awaitable outcome per step and the
            final deployment
        """
        opts = self._validate_create_options(options)
        progress = CreationProgress()
        progress.attach(asyncio.ensure_future(self._create(opts, progress, cancel_event)))
        return progress

    def _validate_create_options(
        self, options: Union[CreateDeploymentOptions, Mapping[str, Any], None]
    ) -> CreateDeploymentOptions:
        opts = _coerce_options(CreateDeploymentOptions, options)
        if opts.local_seed_location and not os.path.isdir(opts.local_seed_location):
            raise ConfigurationInvalid(
                f"Seed location {opts.local_seed_location} is not a directory",
                details={"local_seed_location": opts.local_seed_location},
            )
        return opts

    async def _create(
        self,
        opts: CreateDeploymentOptions,
        progress: Optional[CreationProgress],
        cancel_event: Optional[asyncio.Event],
    ) -> Deployment:
        name = opts.name or generate_deployment_name(self.rng)
        image = opts.image or self.settings.default_image
        tag = opts.resolve_image_tag(self.settings.default_image_tag)
        log = logger.bind(deployment=name, image=image, tag=tag)

        async with self._hold(name, OperationType.CREATE):
            if await self._inspect(name, OperationType.CREATE) is not None:
                log.warning("deployment_already_exists")
                raise CreationFailed(
                    f"Deployment {name} already exists",
                    details={"deployment": name, "reason": "already_exists"},
                )

            self._in_flight[name] = DeploymentStatus.CREATING
            log.info("deployment_creating")
            try:
                if opts.skip_pull_image:
                    _resolve(progress, CreationStep.PULL_IMAGE, StepOutcome.SKIPPED)
                else:
                    try:
                        await self.runtime.pull_image(image, tag)
                    except RuntimeGatewayError as e:
                        log.error("image_pull_failed", error=str(e))
                        raise CreationFailed(
                            f"Failed to pull image {image}:{tag}: {e}",
                            details={"deployment": name, "operation": "pull_image", "image": f"{image}:{tag}"},
                        ) from e
                    _resolve(progress, CreationStep.PULL_IMAGE, StepOutcome.SUCCESS)

                spec = self._container_spec(name, f"{image}:{tag}", opts)
                try:
                    container_id = await self.runtime.create_container(spec)
                except ContainerConflict as e:
                    log.warning("deployment_already_exists", status_code=e.status_code)
                    raise CreationFailed(
                        f"Deployment {name} already exists",
                        details={"deployment": name, "reason": "already_exists"},
                    ) from e
                except RuntimeGatewayError as e:
                    log.error("container_create_failed", error=str(e))
                    raise CreationFailed(
                        f"Failed to create container for deployment {name}: {e}",
                        details={"deployment": name, "operation": "create_container"},
                    ) from e
                _resolve(progress, CreationStep.CREATE_CONTAINER, StepOutcome.SUCCESS)

                self._record(name, DeploymentStatus.CREATING, DeploymentStatus.STARTING)
                try:
                    await self.runtime.start_container(container_id)
                except RuntimeGatewayError as e:
                    self._record(name, DeploymentStatus.STARTING, DeploymentStatus.FAILED)
                    log.error("container_start_failed", container_id=container_id, error=str(e))
                    raise StartFailed(
                        f"Failed to start deployment {name}: {e}",
                        details={"deployment": name, "container_id": container_id},
                    ) from e
            finally:
                self._in_flight.pop(name, None)

            attrs = await self._require(container_id, OperationType.CREATE)
            status = observe(attrs)
            if not DeploymentStateMachine.is_target(OperationType.CREATE, status):
                log.error("deployment_not_running_after_start", status=status.value)
                raise StartFailed(
                    f"Deployment {name} is {status.value} right after start",
                    details={"deployment": name, "container_id": container_id, "status": status.value},
                )
            self._record(name, DeploymentStatus.STARTING, status)
            _resolve(progress, CreationStep.START_CONTAINER, StepOutcome.SUCCESS)

        if opts.wait_until_healthy:
            deployment = await self._wait_healthy(
                name,
                container_id,
                opts.wait_until_healthy_timeout,
                cancel_event=cancel_event,
            )
            _resolve(progress, CreationStep.WAIT_FOR_HEALTHY, StepOutcome.SUCCESS)
        else:
            _resolve(progress, CreationStep.WAIT_FOR_HEALTHY, StepOutcome.SKIPPED)
            deployment = await self._snapshot_of(container_id, OperationType.CREATE)

        log.info("deployment_created", container_id=container_id, status=deployment.status.value)
        return deployment

    def _container_spec(self, name: str, image: str, opts: CreateDeploymentOptions) -> ContainerSpec:
        env: Dict[str, str] = {}

        def put(key: str, value: Any) -> None:
            if value is None:
                return
            env[key] = ("true" if value else "false") if isinstance(value, bool) else str(value)

        if opts.creation_source is not None:
            put(labels.ENV_TOOL, creation_source_value(opts.creation_source))
        put(labels.ENV_RUNNER_LOG_FILE, opts.runner_log_file)
        put(labels.ENV_INITDB_ROOT_USERNAME, opts.mongodb_initdb_root_username)
        put(labels.ENV_INITDB_ROOT_USERNAME_FILE, opts.mongodb_initdb_root_username_file)
        put(labels.ENV_INITDB_ROOT_PASSWORD, opts.mongodb_initdb_root_password)
        put(labels.ENV_INITDB_ROOT_PASSWORD_FILE, opts.mongodb_initdb_root_password_file)
        put(labels.ENV_INITDB_DATABASE, opts.mongodb_initdb_database)
        put(labels.ENV_MONGOT_LOG_FILE, opts.mongot_log_file)
        put(labels.ENV_DO_NOT_TRACK, opts.do_not_track)
        put(labels.ENV_TELEMETRY_BASE_URL, opts.telemetry_base_url)
        put(labels.ENV_LOAD_SAMPLE_DATA, opts.load_sample_data)

        binds = {}
        if opts.local_seed_location:
            binds[os.path.abspath(opts.local_seed_location)] = (labels.SEED_MOUNT_TARGET, "rw")

        return ContainerSpec(
            name=name,
            image=image,
            labels={labels.LABEL_MARKER_KEY: labels.LABEL_MARKER_VALUE},
            environment=env,
            ports=to_docker_binding(opts.port_binding),
            binds=binds,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_deployments(self) -> Tuple[Deployment, ...]:
        """
        List managed deployments, stopped ones included.

        Containers that vanish between listing and inspection are skipped.
        """
        try:
            summaries = await self.runtime.list_containers(
                {labels.LABEL_MARKER_KEY: labels.LABEL_MARKER_VALUE}
            )
        except RuntimeGatewayError as e:
            raise RuntimeOperationFailed("list_deployments", "*", str(e)) from e

        deployments = []
        for summary in summaries:
            if not is_managed(summary):
                continue
            attrs = await self._inspect(summary["Id"], "list_deployments")
            if attrs is None or not is_managed(attrs):
                logger.debug("deployment_vanished_during_list", container_id=summary["Id"])
                continue
            deployments.append(self._snapshot(attrs))

        logger.debug("deployments_listed", count=len(deployments))
        return tuple(deployments)

    async def get_deployment(self, deployment: str) -> Deployment:
        """
        Get a fresh snapshot of a deployment.

        Raises:
            NotFound: If the deployment does not exist or is not managed here
        """
        return self._snapshot(await self._require(deployment, "get_deployment"))

    async def get_logs(
        self,
        deployment: str,
        options: Union[LogsOptions, Mapping[str, Any], None] = None,
    ) -> Tuple[LogLine, ...]:
        """Get deployment logs as stream-tagged lines in time order."""
        opts = _coerce_options(LogsOptions, options)
        attrs = await self._require(deployment, "get_logs")
        return await self.log_collector.collect(attrs["Id"], opts)

    async def get_connection_string(
        self,
        deployment: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify: bool = False,
    ) -> str:
        """
        Build the connection string of a running deployment.

        Without explicit credentials, the deployment's root credentials are
        used when it has any.

        Raises:
            NotFound: If the deployment does not exist
            NotRunning: If the deployment is not running or has no endpoint
            RuntimeOperationFailed: If verification fails
        """
        snapshot = await self.get_deployment(deployment)
        if not snapshot.is_running:
            raise NotRunning(snapshot.name, details={
                "deployment": snapshot.name,
                "status": snapshot.status.value,
                "endpoints": len(snapshot.port_bindings),
            })

        if username is None and password is None:
            username, password = await self._root_credentials(snapshot)

        connection_string = ConnectionStringBuilder.for_deployment(snapshot, username, password)

        if verify:
            try:
                await ConnectionStringBuilder.verify(connection_string)
            except PyMongoError as e:
                logger.warning("connection_string_verify_failed", deployment=snapshot.name, error=str(e))
                raise RuntimeOperationFailed("verify_connection_string", snapshot.name, str(e)) from e

        return connection_string

    async def get_deployment_id(self, deployment: str) -> str:
        """
        Read the deployment id stored in ``admin.atlascli`` by the image.

        Raises:
            NotRunning: If the deployment is not running
            NotFound: If the deployment or its id does not exist
        """
        snapshot = await self.get_deployment(deployment)
        if not snapshot.is_running:
            raise NotRunning(snapshot.name)

        username, password = await self._root_credentials(snapshot)
        command = ["mongosh", _IN_CONTAINER_URI]
        if username and password:
            command += [f"--username={username}", f"--password={password}"]
        command += ["--eval", _DEPLOYMENT_ID_EVAL, "--quiet"]

        result = await self._exec(snapshot, command, "get_deployment_id")
        deployment_id = result.stdout.decode("utf-8", errors="replace").strip()
        if not deployment_id:
            raise NotFound(snapshot.name, details={"deployment": snapshot.name, "reason": "deployment_id_not_set"})
        return deployment_id

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self, deployment: str) -> Deployment:
        """Start a stopped deployment."""
        return await self._transition(deployment, OperationType.START, self.runtime.start_container)

    async def stop(self, deployment: str, timeout: Optional[int] = None) -> Deployment:
        """Stop a running or paused deployment."""
        return await self._transition(
            deployment,
            OperationType.STOP,
            lambda container: self.runtime.stop_container(container, timeout=timeout),
        )

    async def pause(self, deployment: str) -> Deployment:
        """Pause a running deployment."""
        return await self._transition(deployment, OperationType.PAUSE, self.runtime.pause_container)

    async def unpause(self, deployment: str) -> Deployment:
        """Unpause a paused deployment."""
        return await self._transition(deployment, OperationType.UNPAUSE, self.runtime.unpause_container)

    async def delete_deployment(self, deployment: str) -> None:
        """
        Stop (if needed) and remove a deployment.

        Raises:
            NotFound: If the deployment does not exist
            InvalidTransition: If another operation is in progress
            RuntimeOperationFailed: If the runtime errors
        """
        attrs = await self._require(deployment, OperationType.DELETE)
        name = _name_of(attrs)
        self._validate(name, attrs, OperationType.DELETE)

        async with self._hold(name, OperationType.DELETE):
            attrs = await self._require(deployment, OperationType.DELETE)
            current = self._validate(name, attrs, OperationType.DELETE)
            container_id = attrs["Id"]

            self._record(name, current, DeploymentStatus.REMOVING)
            self._in_flight[name] = DeploymentStatus.REMOVING
            try:
                if current == DeploymentStatus.PAUSED:
                    await self.runtime.unpause_container(container_id)
                if current in (DeploymentStatus.RUNNING, DeploymentStatus.HEALTHY,
                               DeploymentStatus.STARTING, DeploymentStatus.PAUSED):
                    await self.runtime.stop_container(container_id)
                await self.runtime.remove_container(container_id)
            except ContainerNotFound:
                logger.info("deployment_vanished_during_delete", deployment=name)
            except RuntimeGatewayError as e:
                logger.error("deployment_delete_failed", deployment=name, error=str(e))
                raise RuntimeOperationFailed(OperationType.DELETE.value, name, str(e)) from e
            finally:
                self._in_flight.pop(name, None)

            status = observe(await self._inspect(container_id, OperationType.DELETE))
            if status != DeploymentStatus.REMOVED:
                raise RuntimeOperationFailed(
                    OperationType.DELETE.value, name, f"deployment is still {status.value}"
                )
            self._record(name, DeploymentStatus.REMOVING, DeploymentStatus.REMOVED)
            logger.info("deployment_deleted", deployment=name, container_id=container_id)

    async def wait_until_healthy(
        self,
        deployment: str,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
        allow_unhealthy_initial_state: bool = False,
    ) -> Deployment:
        """
        Wait for a deployment to become healthy.

        The wait holds no lock, so a concurrent stop or delete ends it.

        Raises:
            InvalidTransition: If the deployment is not starting or running
            HealthCheckTimeout: If the deadline passes first
            HealthCheckFailed: If the deployment turns unhealthy or stops
            NotFound: If the deployment disappears
            OperationCancelled: If cancel_event is set
        """
        attrs = await self._require(deployment, OperationType.WAIT)
        name = _name_of(attrs)
        self._validate(name, attrs, OperationType.WAIT)
        return await self._wait_healthy(
            name,
            attrs["Id"],
            timeout,
            cancel_event=cancel_event,
            allow_unhealthy_initial_state=allow_unhealthy_initial_state,
        )

    async def close(self) -> None:
        """Release the runtime gateway."""
        await self.runtime.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _transition(
        self,
        deployment: str,
        operation: OperationType,
        action: Callable[[str], Awaitable[None]],
    ) -> Deployment:
        attrs = await self._require(deployment, operation)
        name = _name_of(attrs)
        self._validate(name, attrs, operation)

        async with self._hold(name, operation):
            # Another operation may have run while waiting for the lock
            attrs = await self._require(deployment, operation)
            current = self._validate(name, attrs, operation)
            container_id = attrs["Id"]

            intermediate = DeploymentStateMachine.get_state_for_operation(operation)
            self._record(name, current, intermediate)
            self._in_flight[name] = intermediate
            try:
                await action(container_id)
            except ContainerNotFound as e:
                raise NotFound(name) from e
            except RuntimeGatewayError as e:
                logger.error("deployment_operation_failed", deployment=name, operation=operation.value, error=str(e))
                raise RuntimeOperationFailed(operation.value, name, str(e)) from e
            finally:
                self._in_flight.pop(name, None)

            attrs = await self._require(container_id, operation)
            status = observe(attrs)
            if not DeploymentStateMachine.is_target(operation, status):
                logger.error(
                    "deployment_target_not_reached",
                    deployment=name,
                    operation=operation.value,
                    status=status.value,
                )
                raise RuntimeOperationFailed(
                    operation.value, name, f"deployment is {status.value} after {operation.value}",
                    details={"status": status.value},
                )
            self._record(name, intermediate, status)
            return self._snapshot(attrs)

    async def _wait_healthy(
        self,
        name: str,
        container_id: str,
        timeout: Optional[float],
        cancel_event: Optional[asyncio.Event] = None,
        allow_unhealthy_initial_state: bool = False,
    ) -> Deployment:
        timeout = self.settings.health_check_timeout if timeout is None else timeout
        try:
            result = await self.health_poller.poll(
                container_id,
                timeout=timeout,
                cancel_event=cancel_event,
                allow_unhealthy_initial_state=allow_unhealthy_initial_state,
            )
        except RuntimeGatewayError as e:
            logger.error("health_wait_failed", deployment=name, error=str(e))
            raise RuntimeOperationFailed(OperationType.WAIT.value, name, str(e)) from e

        if result.outcome == HealthOutcome.HEALTHY:
            return self._snapshot(result.attrs)
        if result.outcome == HealthOutcome.DISAPPEARED:
            raise NotFound(name)
        if result.outcome == HealthOutcome.UNHEALTHY:
            raise HealthCheckFailed(name, result.state, result.health)
        raise HealthCheckTimeout(name, timeout, details={"state": result.state, "health": result.health})

    async def _root_credentials(self, snapshot: Deployment) -> Tuple[Optional[str], Optional[str]]:
        username = await self._secret(
            snapshot, snapshot.mongodb_initdb_root_username, snapshot.mongodb_initdb_root_username_file
        )
        password = await self._secret(
            snapshot, snapshot.mongodb_initdb_root_password, snapshot.mongodb_initdb_root_password_file
        )
        return username, password

    async def _secret(self, snapshot: Deployment, value: Optional[str], file: Optional[str]) -> Optional[str]:
        """Return a secret from its env value, else from its file inside the container."""
        if value:
            return value
        if not file:
            return None
        result = await self._exec(snapshot, ["cat", file], "read_secret")
        lines = result.stdout.decode("utf-8", errors="replace").splitlines()
        return lines[0] if lines else None

    async def _exec(self, snapshot: Deployment, command, operation: str):
        try:
            result = await self.runtime.exec_in_container(snapshot.id, command)
        except ContainerNotFound as e:
            raise NotFound(snapshot.name) from e
        except RuntimeGatewayError as e:
            raise RuntimeOperationFailed(operation, snapshot.name, str(e)) from e

        if result.exit_code != 0:
            reason = result.stderr.decode("utf-8", errors="replace").strip() or f"exit code {result.exit_code}"
            raise RuntimeOperationFailed(operation, snapshot.name, reason, details={"exit_code": result.exit_code})
        return result

    async def _inspect(self, deployment: str, operation: Union[OperationType, str]) -> Optional[Dict[str, Any]]:
        """Inspect a container; None when the runtime does not know it."""
        try:
            return await self.runtime.inspect_container(deployment)
        except ContainerNotFound:
            return None
        except RuntimeGatewayError as e:
            raise RuntimeOperationFailed(_op_name(operation), deployment, str(e)) from e

    async def _require(self, deployment: str, operation: Union[OperationType, str]) -> Dict[str, Any]:
        attrs = await self._inspect(deployment, operation)
        if attrs is None or not is_managed(attrs):
            raise NotFound(deployment)
        return attrs

    async def _snapshot_of(self, deployment: str, operation: Union[OperationType, str]) -> Deployment:
        return self._snapshot(await self._require(deployment, operation))

    def _snapshot(self, attrs: Mapping[str, Any]) -> Deployment:
        name = _name_of(attrs)
        ports = (attrs.get("NetworkSettings") or {}).get("Ports")
        endpoints = self.port_resolver.resolve(ports, deployment=name)
        snapshot = Deployment.from_inspect(attrs, endpoints)
        in_flight = self._in_flight.get(name)
        if in_flight is not None:
            snapshot = snapshot.model_copy(update={"status": in_flight})
        return snapshot

    def _validate(self, name: str, attrs: Mapping[str, Any], operation: OperationType) -> DeploymentStatus:
        status = self._in_flight.get(name) or observe(attrs)
        DeploymentStateMachine.validate_operation(status, operation, deployment=name)
        return status

    def _record(self, name: str, from_status: DeploymentStatus, to_status: DeploymentStatus) -> None:
        if from_status == to_status:
            return
        DeploymentStateMachine.validate_transition(from_status, to_status, deployment=name)
        logger.info(
            "deployment_status_changed",
            deployment=name,
            from_status=from_status.value,
            to_status=to_status.value,
        )

    @asynccontextmanager
    async def _hold(self, name: str, operation: OperationType) -> AsyncIterator[None]:
        async with self.locks.hold(name, operation.value):
            yield


def _coerce_options(model: Type[M], options: Union[M, Mapping[str, Any], None]) -> M:
    if options is None:
        options = {}
    if isinstance(options, model):
        return options
    try:
        return model.model_validate(options)
    except ValidationError as e:
        raise ConfigurationInvalid(
            f"Invalid {model.__name__}: {e.error_count()} validation error(s)",
            details={"errors": [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]},
        ) from e


def _resolve(progress: Optional[CreationProgress], step: CreationStep, outcome: StepOutcome) -> None:
    if progress is not None:
        progress.resolve(step, outcome)


def _name_of(attrs: Mapping[str, Any]) -> str:
    return (attrs.get("Name") or attrs.get("Id") or "").lstrip("/")


def _op_name(operation: Union[OperationType, str]) -> str:
    return operation.value if isinstance(operation, OperationType) else operation
