"""Remote catlet summaries and reconciled state."""

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReconciledState(str, Enum):
    """State the orchestrator reasons over."""
    ABSENT = "absent"
    STOPPED = "created-stopped"
    RUNNING = "created-running"
    UNKNOWN = "created-unknown"
    ERROR = "created-error"

    @property
    def is_created(self) -> bool:
        return self != ReconciledState.ABSENT


_STATUS_MAP = {
    "running": ReconciledState.RUNNING,
    "stopped": ReconciledState.STOPPED,
    # pending may be starting or stopping
    "pending": ReconciledState.UNKNOWN,
    "error": ReconciledState.ERROR,
}


def map_status(status: Optional[str]) -> ReconciledState:
    """Map a remote status string onto a ReconciledState. Never raises."""
    if not isinstance(status, str):
        return ReconciledState.UNKNOWN
    return _STATUS_MAP.get(status.strip().lower(), ReconciledState.UNKNOWN)


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)


class FloatingPort(_ApiModel):
    """Externally reachable port of a catlet network."""
    name: Optional[str] = None
    provider: Optional[str] = None
    ip_v4_addresses: List[str] = Field(default_factory=list)


class NetworkAttachment(_ApiModel):
    """Network a catlet is attached to, with its assigned addresses."""
    name: Optional[str] = None
    provider: Optional[str] = None
    ip_v4_addresses: List[str] = Field(default_factory=list)
    floating_port: Optional[FloatingPort] = None


class CatletStatus(_ApiModel):
    """Summary of a catlet known to the compute API."""
    kind: Literal["found"] = "found"
    id: str
    name: str
    status: str = "unknown"
    networks: List[NetworkAttachment] = Field(default_factory=list)

    @property
    def state(self) -> ReconciledState:
        return map_status(self.status)

    def reachable_address(self) -> Optional[str]:
        """First floating IPv4 address; internal addresses are not reachable."""
        for network in self.networks:
            if network.floating_port and network.floating_port.ip_v4_addresses:
                return network.floating_port.ip_v4_addresses[0]
        return None


class AbsentCatlet(BaseModel):
    """Sentinel summary for a catlet the compute API does not know."""
    kind: Literal["absent"] = "absent"
    status: Literal["absent"] = "absent"

    model_config = ConfigDict(frozen=True)

    @property
    def state(self) -> ReconciledState:
        return ReconciledState.ABSENT


ABSENT = AbsentCatlet()

CatletSummary = Union[CatletStatus, AbsentCatlet]


class Project(_ApiModel):
    """Compute project."""
    id: str
    name: str


class ValidationResult(BaseModel):
    """Answer of the remote spec validator."""
    valid: bool = True
    errors: List[str] = Field(default_factory=list)


class ConnectionInfo(BaseModel):
    """How to reach a running catlet."""
    host: str
    port: int
    username: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
