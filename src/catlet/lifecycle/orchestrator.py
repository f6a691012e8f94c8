"""Catlet lifecycle orchestration."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from catlet.errors import (
    ApiError,
    ComputeConnectionError,
    ConfigurationError,
    OperationTimeoutError,
    ReconciliationError,
)
from catlet.lifecycle.cache import StatusCache
from catlet.lifecycle.projects import ProjectManager
from catlet.lifecycle.resolver import ConfigurationResolver
from catlet.lifecycle.tracker import DEFAULT_TIMEOUT, EventListener, OperationTracker
from catlet.models.catlet import CatletDefinition, CatletSpec
from catlet.models.operation import OperationResult, ProgressEvent, ResourceAttached
from catlet.models.status import ABSENT, CatletSummary, ConnectionInfo, ReconciledState
from catlet.providers.base import ComputeAPI, StopMode
from catlet.providers.cloudinit import CloudInitProvider


logger = logging.getLogger(__name__)


class Action(str, Enum):
    """Lifecycle actions a caller can request."""
    UP = "up"
    HALT = "halt"
    DESTROY = "destroy"
    RELOAD = "reload"
    RESUME = "resume"


@dataclass
class ReconcileResult:
    """Outcome of one reconcile call."""
    local_id: Optional[str]
    state: ReconciledState
    provision_requested: bool = False
    message: Optional[str] = None


@dataclass
class _Run:
    action: Action
    local_id: Optional[str]
    state: ReconciledState
    stop_mode: StopMode = StopMode.GRACEFUL
    provision_requested: bool = False
    message: Optional[str] = None


@dataclass
class Observation:
    """Reconciled view of one catlet."""
    local_id: Optional[str]
    summary: CatletSummary

    @property
    def state(self) -> ReconciledState:
        return self.summary.state


_CREATED = (ReconciledState.STOPPED, ReconciledState.RUNNING, ReconciledState.UNKNOWN, ReconciledState.ERROR)

TRANSITIONS = {
    Action.UP: {
        ReconciledState.ABSENT: "_create_and_start",
        ReconciledState.STOPPED: "_start",
        ReconciledState.RUNNING: "_request_provision",
        ReconciledState.UNKNOWN: "_already_created",
        ReconciledState.ERROR: "_already_created",
    },
    Action.HALT: {
        ReconciledState.ABSENT: "_not_created",
        ReconciledState.STOPPED: "_already_stopped",
        ReconciledState.RUNNING: "_stop",
        ReconciledState.UNKNOWN: "_stop",
        ReconciledState.ERROR: "_stop",
    },
    Action.DESTROY: {
        ReconciledState.ABSENT: "_not_created",
        **{state: "_destroy" for state in _CREATED},
    },
    Action.RELOAD: {
        ReconciledState.ABSENT: "_not_created",
        **{state: "_halt_then_start" for state in _CREATED},
    },
    Action.RESUME: {
        ReconciledState.ABSENT: "_not_created",
        ReconciledState.STOPPED: "_start",
        ReconciledState.RUNNING: "_already_running",
        ReconciledState.UNKNOWN: "_start",
        ReconciledState.ERROR: "_start",
    },
}


class LifecycleOrchestrator:
    """Maps requested actions onto compute API calls for one catlet."""

    def __init__(
        self,
        definition: CatletDefinition,
        api: ComputeAPI,
        cache: StatusCache,
        tracker: Optional[OperationTracker] = None,
        resolver: Optional[ConfigurationResolver] = None,
        cloud_init: Optional[CloudInitProvider] = None,
        operation_timeout: float = DEFAULT_TIMEOUT,
        listener: Optional[EventListener] = None,
        pre_destroy_hook: Optional[Callable[[str], Awaitable[None]]] = None,
    ):
        """Initialize orchestrator."""
        self.definition = definition
        self.api = api
        self.cache = cache
        self.tracker = tracker or OperationTracker(api)
        self.resolver = resolver or ConfigurationResolver()
        self.cloud_init = cloud_init or CloudInitProvider()
        self.operation_timeout = operation_timeout
        self.listener = listener
        self.pre_destroy_hook = pre_destroy_hook

    @property
    def name(self) -> Optional[str]:
        return self.definition.effective_name

    # Observation and guards

    async def observe(self, local_id: Optional[str], refresh: bool = False) -> Observation:
        """Current summary of the catlet, correcting or clearing ``local_id``."""
        lookup = await self.cache.lookup_or_refresh(local_id, self.name, refresh=refresh)

        if lookup.summary is ABSENT and local_id and not refresh:
            # confirm before treating a known id as stale
            lookup = await self.cache.lookup_or_refresh(local_id, self.name, refresh=True)

        if lookup.summary is ABSENT:
            if local_id:
                logger.info(f"Catlet {local_id} ({self.name}) no longer exists, clearing identifier")
                self._identifier_changed(local_id, None)
            return Observation(None, ABSENT)

        if lookup.catlet_id != local_id:
            self._identifier_changed(local_id, lookup.catlet_id)
        return Observation(lookup.catlet_id, lookup.summary)

    async def is_created(self, local_id: Optional[str]) -> bool:
        observation = await self.observe(local_id)
        return observation.local_id is not None and observation.state.is_created

    async def is_stopped(self, local_id: Optional[str]) -> bool:
        return await self.is_state(local_id, ReconciledState.STOPPED)

    async def is_state(self, local_id: Optional[str], state: ReconciledState) -> bool:
        observation = await self.observe(local_id)
        return observation.state == state

    async def read_state(self, local_id: Optional[str]) -> ReconciledState:
        """Freshly read state of the catlet."""
        if not local_id:
            return (await self.observe(None)).state
        return (await self.observe(local_id, refresh=True)).state

    async def read_connection_info(self, local_id: Optional[str]) -> Optional[ConnectionInfo]:
        """Connection details of a running catlet, None when not reachable yet."""
        observation = await self.observe(local_id)
        if observation.state != ReconciledState.RUNNING:
            logger.debug(f"Catlet {self.name} is {observation.state.value}, no connection info")
            return None

        address = observation.summary.reachable_address()
        if not address:
            logger.debug(f"Catlet {observation.local_id} has no floating IP address yet")
            return None

        credentials = self.definition.credentials
        return ConnectionInfo(
            host=address,
            port=self.cloud_init.connection_port(self.definition),
            username=credentials.username,
            password=self.cloud_init.effective_password(self.definition),
            private_key_path=credentials.private_key_path,
        )

    # Reconciliation

    def resolve(self) -> CatletSpec:
        """Build the creation request for this catlet."""
        return self.resolver.resolve(self.definition, self.cloud_init.generate(self.definition))

    async def reconcile(
        self,
        action: Action,
        local_id: Optional[str],
        stop_mode: StopMode = StopMode.GRACEFUL,
    ) -> ReconcileResult:
        """Issue the remote calls needed to carry out ``action``."""
        action = Action(action)
        observation = await self.observe(local_id)
        run = _Run(action, observation.local_id, observation.state, stop_mode=StopMode(stop_mode))

        handler = getattr(self, TRANSITIONS[action][run.state])
        logger.debug(f"{action.value} on {self.name} in state {run.state.value}: {handler.__name__}")
        await handler(run)

        if run.message:
            logger.info(f"{self.name}: {run.message}")
        return ReconcileResult(run.local_id, run.state, run.provision_requested, run.message)

    async def ensure_project(self, project: str):
        """Make sure the project exists, creating it when allowed."""
        if await self.api.get_project(project):
            return

        if not self.definition.auto_create_project:
            raise ConfigurationError(f"Project '{project}' not found and auto_create_project is disabled")

        logger.info(f"Project '{project}' not found, creating it")
        projects = ProjectManager(self.api, self.tracker, self.operation_timeout, listener=self.listener)
        await projects.create(project)

    async def _validate(self, spec: CatletSpec):
        try:
            validation = await self.api.validate_spec(spec)
        except (ComputeConnectionError, ApiError) as e:
            logger.warning(f"Could not validate configuration of {spec.name}, proceeding: {e}")
            return
        if not validation.valid:
            raise ConfigurationError(f"Configuration of catlet {spec.name} rejected", validation.errors)
        logger.info(f"Configuration of catlet {spec.name} validated successfully")

    async def _wait(self, operation_id: str, listener: Optional[EventListener] = None) -> OperationResult:
        return await self.tracker.wait(
            operation_id,
            timeout=self.operation_timeout,
            listener=listener or self.listener,
        )

    async def _refresh(self, run: _Run):
        lookup = await self.cache.lookup_or_refresh(run.local_id, None, refresh=True)
        run.state = lookup.summary.state

    def _identifier_changed(self, old_id: Optional[str], new_id: Optional[str]):
        logger.debug(f"Identifier of {self.name} changed from {old_id} to {new_id}")
        self.cache.invalidate()

    def _set_id(self, run: _Run, catlet_id: Optional[str]):
        if catlet_id != run.local_id:
            self._identifier_changed(run.local_id, catlet_id)
            run.local_id = catlet_id

    async def _create_and_start(self, run: _Run):
        spec = self.resolve()
        logger.info(f"Creating catlet {spec.name} from {spec.parent} in project {spec.project}")

        await self.ensure_project(spec.project)
        await self._validate(spec)

        attached = {}

        def remember_catlet(event: ProgressEvent):
            if isinstance(event, ResourceAttached) and event.resource_type.lower() == "catlet":
                attached.setdefault("id", event.resource_id)
            if self.listener:
                self.listener(event)

        operation_id = await self.api.submit_create(spec)
        try:
            result = await self._wait(operation_id, listener=remember_catlet)
        except OperationTimeoutError as e:
            e.catlet_id = attached.get("id")
            if e.catlet_id:
                self._identifier_changed(run.local_id, e.catlet_id)
            raise

        catlet_id = result.catlet_id
        if not catlet_id:
            logger.warning(
                f"Operation {operation_id} did not report the created catlet, "
                f"falling back to lookup by name {spec.name}"
            )
            self.cache.invalidate()
            catlet_id = (await self.cache.lookup(None, spec.name)).catlet_id
            if not catlet_id:
                raise ReconciliationError(
                    None, f"creation of {spec.name} completed but the catlet was not found", operation_id=operation_id
                )

        logger.info(f"Operation {operation_id} created catlet {spec.name} with id {catlet_id}")
        self._set_id(run, catlet_id)
        await self._refresh(run)

        if run.state != ReconciledState.RUNNING:
            await self._start(run)

    async def _start(self, run: _Run):
        logger.info(f"Starting catlet {run.local_id}")
        operation_id = await self.api.submit_start(run.local_id)
        await self._wait(operation_id)
        await self._refresh(run)

    async def _stop(self, run: _Run):
        logger.info(f"Stopping catlet {run.local_id} ({run.stop_mode.value})")
        operation_id = await self.api.submit_stop(run.local_id, run.stop_mode)
        await self._wait(operation_id)
        await self._refresh(run)

    async def _destroy(self, run: _Run):
        if self.pre_destroy_hook:
            await self.pre_destroy_hook(run.local_id)

        logger.info(f"Destroying catlet {run.local_id}")
        operation_id = await self.api.submit_destroy(run.local_id)
        await self._wait(operation_id)
        await self._refresh(run)

        if run.state != ReconciledState.ABSENT:
            raise ReconciliationError(
                run.local_id,
                f"destroy operation {operation_id} completed but the catlet is still reported as {run.state.value}",
            )
        self._set_id(run, None)

    async def _halt_then_start(self, run: _Run):
        if run.state != ReconciledState.STOPPED:
            await self._stop(run)
        # an ambiguous read after the stop must not stall the reload
        if run.state != ReconciledState.RUNNING:
            await self._start(run)

    async def _request_provision(self, run: _Run):
        run.provision_requested = True
        run.message = "Catlet is already running, provisioning"

    async def _already_created(self, run: _Run):
        run.message = f"Catlet is already created ({run.state.value})"

    async def _already_running(self, run: _Run):
        run.message = "Catlet is already running"

    async def _already_stopped(self, run: _Run):
        run.message = "Catlet is already stopped"

    async def _not_created(self, run: _Run):
        run.message = "Catlet is not created"
