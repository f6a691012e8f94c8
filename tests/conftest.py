"""Shared fixtures: an in-memory compute API and a controllable clock."""

import itertools
from typing import Dict, List, Optional

import pytest

from catlet.errors import ApiError
from catlet.lifecycle.cache import StatusCache
from catlet.lifecycle.tracker import OperationTracker
from catlet.models.catlet import CatletDefinition
from catlet.models.operation import Operation, OperationResource
from catlet.models.status import (
    CatletStatus,
    FloatingPort,
    NetworkAttachment,
    Project,
    ValidationResult,
)
from catlet.providers.base import ComputeAPI, StopMode


class FakeComputeAPI(ComputeAPI):
    """In-memory compute API that records every call.

    Submitted actions take effect immediately; the returned operation
    completes on the first poll unless ``create_pending_polls`` delays a create.
    """

    MUTATIONS = ("create", "start", "stop", "destroy", "create_project", "remove_project", "set_network_config")

    def __init__(self):
        self.catlets: Dict[str, CatletStatus] = {}
        self.projects: Dict[str, Project] = {"default": Project(id="project-default", name="default")}
        self.network_configs: Dict[str, dict] = {}
        self.operations: Dict[str, List[Operation]] = {}
        self.calls: List[tuple] = []
        self.validation = ValidationResult(valid=True)
        self.validation_error: Optional[Exception] = None
        self.list_error: Optional[Exception] = None
        self.report_created_id = True
        self.create_pending_polls = 0
        self.status_after_stop = "stopped"
        self.status_after_start = "running"
        self.keep_after_destroy = False
        self._ids = itertools.count(1)

    # Test helpers

    def add_catlet(self, name: str, status: str = "stopped", catlet_id: Optional[str] = None,
                   address: Optional[str] = None) -> CatletStatus:
        catlet_id = catlet_id or f"catlet-{next(self._ids)}"
        networks = []
        if address:
            networks.append(
                NetworkAttachment(
                    name="default",
                    ip_v4_addresses=["10.0.0.5"],
                    floating_port=FloatingPort(name="default", ip_v4_addresses=[address]),
                )
            )
        catlet = CatletStatus(id=catlet_id, name=name, status=status, networks=networks)
        self.catlets[catlet_id] = catlet
        return catlet

    def set_status(self, catlet_id: str, status: str):
        self.catlets[catlet_id] = self.catlets[catlet_id].model_copy(update={"status": status})

    def script_operation(self, operation_id: str, snapshots: List[Operation]):
        """Serve the given snapshots, one per poll, repeating the last one."""
        self.operations[operation_id] = list(snapshots)

    def calls_named(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    @property
    def mutations(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in self.MUTATIONS]

    def _operation(self, resources=(), pending_polls: int = 0) -> str:
        operation_id = f"op-{next(self._ids)}"
        resources = [OperationResource(resource_type=t, resource_id=i) for t, i in resources]
        snapshots = [Operation(id=operation_id, status="running", resources=resources)] * pending_polls
        snapshots.append(Operation(id=operation_id, status="completed", resources=resources))
        self.operations[operation_id] = snapshots
        return operation_id

    def _require(self, catlet_id: str):
        if catlet_id not in self.catlets:
            raise ApiError(f"HTTP error 404: catlet {catlet_id} not found", status_code=404)

    # ComputeAPI

    async def submit_create(self, spec):
        self.calls.append(("create", spec.name))
        catlet = self.add_catlet(spec.name, status="stopped")
        resources = [("Catlet", catlet.id)] if self.report_created_id else []
        return self._operation(resources, pending_polls=self.create_pending_polls)

    async def submit_start(self, catlet_id):
        self.calls.append(("start", catlet_id))
        self._require(catlet_id)
        self.set_status(catlet_id, self.status_after_start)
        return self._operation([("Catlet", catlet_id)])

    async def submit_stop(self, catlet_id, mode=StopMode.GRACEFUL):
        self.calls.append(("stop", catlet_id, mode))
        self._require(catlet_id)
        self.set_status(catlet_id, self.status_after_stop)
        return self._operation([("Catlet", catlet_id)])

    async def submit_destroy(self, catlet_id):
        self.calls.append(("destroy", catlet_id))
        self._require(catlet_id)
        if not self.keep_after_destroy:
            del self.catlets[catlet_id]
        return self._operation()

    async def get_resource(self, catlet_id):
        self.calls.append(("get", catlet_id))
        return self.catlets.get(catlet_id)

    async def list_resources(self):
        self.calls.append(("list",))
        if self.list_error:
            raise self.list_error
        return list(self.catlets.values())

    async def get_operation(self, operation_id, log_since=None):
        self.calls.append(("operation", operation_id, log_since))
        snapshots = self.operations[operation_id]
        if len(snapshots) > 1:
            return snapshots.pop(0)
        return snapshots[0]

    async def validate_spec(self, spec):
        self.calls.append(("validate", spec.name))
        if self.validation_error:
            raise self.validation_error
        return self.validation

    async def get_project(self, name):
        self.calls.append(("get_project", name))
        return self.projects.get(name)

    async def submit_create_project(self, name):
        self.calls.append(("create_project", name))
        project = Project(id=f"project-{next(self._ids)}", name=name)
        self.projects[name] = project
        return self._operation([("Project", project.id)])

    async def list_projects(self):
        self.calls.append(("list_projects",))
        return list(self.projects.values())

    async def submit_remove_project(self, project_id):
        self.calls.append(("remove_project", project_id))
        self.projects = {name: p for name, p in self.projects.items() if p.id != project_id}
        self.network_configs.pop(project_id, None)
        return self._operation()

    async def get_network_config(self, project_id):
        self.calls.append(("get_network_config", project_id))
        return self.network_configs.get(project_id, {})

    async def submit_set_network_config(self, project_id, configuration):
        self.calls.append(("set_network_config", project_id))
        self.network_configs[project_id] = configuration
        return self._operation([("Project", project_id)])


class FakeClock:
    """Monotonic clock that only advances when slept on."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_api():
    """In-memory compute API."""
    return FakeComputeAPI()


@pytest.fixture
def clock():
    """Controllable clock for the operation tracker."""
    return FakeClock()


@pytest.fixture
def tracker(fake_api, clock):
    """Operation tracker polling the fake API without real sleeps."""
    return OperationTracker(fake_api, poll_interval=1.0, clock=clock, sleep=clock.sleep)


@pytest.fixture
def cache(fake_api):
    """Status cache backed by the fake API."""
    return StatusCache(fake_api)


@pytest.fixture
def definition():
    """Minimal Linux catlet definition."""
    return CatletDefinition(name="web", parent="dbosoft/ubuntu-22.04/starter")
