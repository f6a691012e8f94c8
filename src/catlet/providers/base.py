"""Compute API interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from catlet.models.catlet import CatletSpec
from catlet.models.operation import Operation
from catlet.models.status import CatletStatus, Project, ValidationResult


class StopMode(str, Enum):
    """How a catlet is stopped."""
    GRACEFUL = "graceful"
    HARD = "hard"
    KILL = "kill"


class ComputeAPI(ABC):
    """Remote compute API the orchestrator talks to.

    Submit methods return the id of the remote operation immediately;
    completion is observed through ``get_operation``.
    """

    @abstractmethod
    async def submit_create(self, spec: CatletSpec) -> str:
        """Submit a catlet creation."""
        pass

    @abstractmethod
    async def submit_start(self, catlet_id: str) -> str:
        """Submit a catlet start."""
        pass

    @abstractmethod
    async def submit_stop(self, catlet_id: str, mode: StopMode = StopMode.GRACEFUL) -> str:
        """Submit a catlet stop."""
        pass

    @abstractmethod
    async def submit_destroy(self, catlet_id: str) -> str:
        """Submit a catlet removal."""
        pass

    @abstractmethod
    async def get_resource(self, catlet_id: str) -> Optional[CatletStatus]:
        """Fetch one catlet summary, None when it does not exist."""
        pass

    @abstractmethod
    async def list_resources(self) -> List[CatletStatus]:
        """List all catlet summaries visible to the caller."""
        pass

    @abstractmethod
    async def get_operation(self, operation_id: str, log_since: Optional[datetime] = None) -> Operation:
        """Fetch an operation snapshot, with log entries newer than ``log_since``."""
        pass

    @abstractmethod
    async def validate_spec(self, spec: CatletSpec) -> ValidationResult:
        """Ask the remote side to validate a creation request."""
        pass

    @abstractmethod
    async def get_project(self, name: str) -> Optional[Project]:
        """Find a project by name."""
        pass

    @abstractmethod
    async def submit_create_project(self, name: str) -> str:
        """Submit a project creation."""
        pass

    @abstractmethod
    async def list_projects(self) -> List[Project]:
        """List all projects."""
        pass

    @abstractmethod
    async def submit_remove_project(self, project_id: str) -> str:
        """Submit the removal of a project and everything in it."""
        pass

    @abstractmethod
    async def get_network_config(self, project_id: str) -> Dict[str, Any]:
        """Fetch the virtual network configuration of a project."""
        pass

    @abstractmethod
    async def submit_set_network_config(self, project_id: str, configuration: Dict[str, Any]) -> str:
        """Submit a new virtual network configuration for a project."""
        pass
