"""Pydantic models for catlets, operations and configuration."""

from catlet.models.config import SpawnConfig, ApiConfig, OperationsConfig
from catlet.models.catlet import (
    CatletDefinition,
    CatletSpec,
    Capability,
    CpuSpec,
    Credentials,
    DriveSpec,
    DriveType,
    MemorySpec,
    NetworkSpec,
)
from catlet.models.fodder import FodderItem, FodderType, FodderVariable
from catlet.models.operation import (
    Operation,
    OperationResult,
    OperationStatus,
    ProgressEvent,
)
from catlet.models.status import (
    ABSENT,
    CatletStatus,
    CatletSummary,
    ConnectionInfo,
    ReconciledState,
    map_status,
)

__all__ = [
    "SpawnConfig",
    "ApiConfig",
    "OperationsConfig",
    "CatletDefinition",
    "CatletSpec",
    "Capability",
    "CpuSpec",
    "Credentials",
    "DriveSpec",
    "DriveType",
    "MemorySpec",
    "NetworkSpec",
    "FodderItem",
    "FodderType",
    "FodderVariable",
    "Operation",
    "OperationResult",
    "OperationStatus",
    "ProgressEvent",
    "ABSENT",
    "CatletStatus",
    "CatletSummary",
    "ConnectionInfo",
    "ReconciledState",
    "map_status",
]
