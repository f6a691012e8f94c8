"""Project and project network management."""

import logging
from typing import Any, Dict, List, Optional, Union

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from catlet.errors import ConfigurationError, ReconciliationError
from catlet.lifecycle.tracker import DEFAULT_TIMEOUT, EventListener, OperationTracker
from catlet.models.operation import OperationResult
from catlet.models.status import Project
from catlet.providers.base import ComputeAPI


logger = logging.getLogger(__name__)


class ProjectManager:
    """Creates, removes and configures compute projects."""

    def __init__(
        self,
        api: ComputeAPI,
        tracker: Optional[OperationTracker] = None,
        operation_timeout: float = DEFAULT_TIMEOUT,
        listener: Optional[EventListener] = None,
    ):
        """Initialize project manager."""
        self.api = api
        self.tracker = tracker or OperationTracker(api)
        self.operation_timeout = operation_timeout
        self.listener = listener

    async def list(self) -> List[Project]:
        """List projects sorted by name."""
        projects = await self.api.list_projects()
        return sorted(projects, key=lambda p: p.name)

    async def get(self, name: str) -> Project:
        """Find a project by name or raise ConfigurationError."""
        project = await self.api.get_project(name)
        if not project:
            raise ConfigurationError(f"Project '{name}' not found")
        return project

    async def create(self, name: str) -> Project:
        """Create a project and wait until it exists."""
        logger.info(f"Creating project {name}")
        operation_id = await self.api.submit_create_project(name)
        result = await self._wait(operation_id)

        if result.project_id:
            project = Project(id=result.project_id, name=name)
        else:
            project = await self.api.get_project(name)
        if not project:
            raise ReconciliationError(
                None, f"creation of project {name} completed but the project was not found", operation_id=operation_id
            )

        logger.info(f"Operation {operation_id} created project {name} with id {project.id}")
        return project

    async def remove(self, name: str) -> Project:
        """Remove a project together with all of its catlets."""
        project = await self.get(name)
        logger.info(f"Removing project {name} ({project.id})")
        operation_id = await self.api.submit_remove_project(project.id)
        await self._wait(operation_id)
        logger.info(f"Operation {operation_id} removed project {name}")
        return project

    async def get_network_config(self, name: str) -> Dict[str, Any]:
        project = await self.get(name)
        return await self.api.get_network_config(project.id)

    async def set_network_config(self, name: str, configuration: Union[str, Dict[str, Any]]) -> OperationResult:
        """Replace the network configuration of a project.

        ``configuration`` is either a mapping or its YAML text.
        """
        if isinstance(configuration, str):
            configuration = parse_network_config(configuration)
        project = await self.get(name)

        logger.info(f"Setting network configuration of project {name}")
        operation_id = await self.api.submit_set_network_config(project.id, configuration)
        result = await self._wait(operation_id)
        logger.info(f"Operation {operation_id} set network configuration of project {name}")
        return result

    async def _wait(self, operation_id: str) -> OperationResult:
        return await self.tracker.wait(operation_id, timeout=self.operation_timeout, listener=self.listener)


def parse_network_config(text: str) -> Dict[str, Any]:
    """Parse a YAML (or JSON) network configuration into a mapping."""
    try:
        data = YAML(typ="safe", pure=True).load(text)
    except YAMLError as e:
        raise ConfigurationError(f"Invalid network configuration: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("Invalid network configuration: expected a mapping")
    return data
