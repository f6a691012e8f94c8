"""Remote operation models and progress events."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class OperationStatus(str, Enum):
    """Operation lifecycle status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.COMPLETED, OperationStatus.FAILED)


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class OperationResource(_ApiModel):
    """Resource attached to an operation."""
    id: Optional[str] = None
    resource_type: str
    resource_id: str


class OperationTask(_ApiModel):
    """Sub-unit of work of an operation."""
    id: str
    parent_task_id: Optional[str] = None
    name: Optional[str] = None
    display_name: Optional[str] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    status: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.name or "Operation"


class OperationLogEntry(_ApiModel):
    """Operational log line forwarded by the remote side."""
    id: Optional[str] = None
    message: Optional[str] = None
    timestamp: Optional[datetime] = None


class Operation(_ApiModel):
    """Snapshot of a remote asynchronous operation."""
    id: str
    status: OperationStatus = OperationStatus.PENDING
    status_message: Optional[str] = None
    resources: List[OperationResource] = Field(default_factory=list)
    tasks: List[OperationTask] = Field(default_factory=list)
    log_entries: List[OperationLogEntry] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        """Map remote status spellings onto OperationStatus."""
        if isinstance(v, str):
            v = v.lower()
            if v == "queued":
                return OperationStatus.PENDING
        return v


class OperationResult(BaseModel):
    """Immutable terminal snapshot of an operation."""
    operation: Operation

    model_config = ConfigDict(frozen=True)

    @property
    def id(self) -> str:
        return self.operation.id

    @property
    def status(self) -> OperationStatus:
        return self.operation.status

    @property
    def status_message(self) -> Optional[str]:
        return self.operation.status_message

    @property
    def completed(self) -> bool:
        return self.operation.status == OperationStatus.COMPLETED

    @property
    def failed(self) -> bool:
        return self.operation.status == OperationStatus.FAILED

    def resource_id(self, resource_type: str) -> Optional[str]:
        """First attached resource id of the given type."""
        for resource in self.operation.resources:
            if resource.resource_type.lower() == resource_type.lower():
                return resource.resource_id
        return None

    @property
    def catlet_id(self) -> Optional[str]:
        return self.resource_id("catlet")

    @property
    def project_id(self) -> Optional[str]:
        return self.resource_id("project")


@dataclass(frozen=True)
class ResourceAttached:
    """A remote resource became associated with the operation."""
    operation_id: str
    resource_type: str
    resource_id: str


@dataclass(frozen=True)
class TaskStarted:
    """A task appeared on the operation."""
    operation_id: str
    task_id: str
    name: str
    progress: Optional[int] = None
    primary: bool = False


@dataclass(frozen=True)
class TaskUpdated:
    """A known task reported new progress or status."""
    operation_id: str
    task_id: str
    name: str
    progress: Optional[int] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class LogLine:
    """Free-text log line from the remote side."""
    operation_id: str
    message: str
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class OperationFinished:
    """Terminal event carrying the completed result."""
    operation_id: str
    result: OperationResult


ProgressEvent = Union[ResourceAttached, TaskStarted, TaskUpdated, LogLine, OperationFinished]
