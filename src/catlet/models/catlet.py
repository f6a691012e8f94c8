"""Catlet specification models."""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from catlet.models.fodder import FodderItem, FodderVariable


class Capability(BaseModel):
    """Named catlet capability (secure_boot, nested_virtualization, ...)."""
    name: str = Field(..., description="Capability name")
    details: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class CpuSpec(BaseModel):
    """CPU sizing."""
    count: Optional[int] = Field(None, ge=1)


class MemorySpec(BaseModel):
    """Memory sizing in MiB."""
    startup: Optional[int] = Field(None, ge=1)
    minimum: Optional[int] = Field(None, ge=1)
    maximum: Optional[int] = Field(None, ge=1)


class DriveType(str, Enum):
    """Drive types understood by the compute API."""
    VHD = "VHD"
    SHARED_VHD = "SharedVHD"
    DVD = "DVD"
    VHD_SET = "VHDSet"


class DriveSpec(BaseModel):
    """Catlet drive."""
    name: str = Field(..., description="Drive name, e.g. sda")
    size: Optional[int] = Field(None, ge=1, description="Size in GB")
    type: DriveType = Field(default=DriveType.VHD)
    source: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def accept_short_names(cls, v):
        """Accept snake_case aliases such as ``shared_vhd``."""
        aliases = {
            "vhd": DriveType.VHD,
            "shared_vhd": DriveType.SHARED_VHD,
            "dvd": DriveType.DVD,
            "vhd_set": DriveType.VHD_SET,
        }
        if isinstance(v, str) and v.lower() in aliases:
            return aliases[v.lower()]
        return v


class NetworkSpec(BaseModel):
    """Network adapter attachment."""
    name: str = Field(default="default")
    adapter_name: Optional[str] = None
    subnet_v4: Optional[str] = None


def dedupe_capabilities(capabilities: List[Capability]) -> List[Capability]:
    """Collapse duplicate names, last definition wins at the first position."""
    positions: Dict[str, int] = {}
    result: List[Capability] = []
    for capability in capabilities:
        if capability.name in positions:
            result[positions[capability.name]] = capability
        else:
            positions[capability.name] = len(result)
            result.append(capability)
    return result


class CatletSpec(BaseModel):
    """Canonical catlet creation request."""
    name: str = Field(..., min_length=1, description="Catlet name, unique within the project")
    project: str = Field(default="default")
    parent: str = Field(..., min_length=1, description="Parent gene reference")
    hostname: Optional[str] = None
    location: Optional[str] = None
    environment: Optional[str] = None
    store: Optional[str] = None
    cpu: Optional[CpuSpec] = None
    memory: Optional[MemorySpec] = None
    capabilities: List[Capability] = Field(default_factory=list)
    drives: List[DriveSpec] = Field(default_factory=list)
    networks: List[NetworkSpec] = Field(default_factory=list)
    fodder: List[FodderItem] = Field(default_factory=list)
    variables: List[FodderVariable] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @field_validator("capabilities")
    @classmethod
    def unique_capabilities(cls, v):
        """Keep at most one entry per capability name."""
        return dedupe_capabilities(v)

    def to_request(self) -> Dict[str, Any]:
        """Render the configuration payload submitted to the compute API."""
        data = self.model_dump(
            mode="json",
            exclude_none=True,
            exclude={"fodder", "capabilities", "drives", "variables"},
        )
        if self.capabilities:
            data["capabilities"] = [c.model_dump(exclude_defaults=True) for c in self.capabilities]
        if self.drives:
            data["drives"] = [d.model_dump(mode="json", exclude_none=True) for d in self.drives]
        if self.variables:
            data["variables"] = [v.model_dump(exclude_none=True) for v in self.variables]
        if self.fodder:
            data["fodder"] = [item.to_request() for item in self.fodder]
        return data


class Credentials(BaseModel):
    """Access credentials owned and persisted by the caller."""
    username: str = Field(default="catlet")
    password: Optional[str] = None
    public_key: Optional[str] = None
    private_key_path: Optional[str] = None


class CatletDefinition(BaseModel):
    """User declaration of a catlet, possibly partial.

    Convenience fields (``cpus``, ``memory``, ``maxmemory``, the capability
    toggles) are folded into the canonical ``CatletSpec`` by the resolver.
    """
    name: Optional[str] = None
    hostname: Optional[str] = None
    project: str = Field(default="default")
    parent: Optional[str] = Field(None, description="Parent gene reference")
    location: Optional[str] = None
    environment: Optional[str] = None
    store: Optional[str] = None

    cpus: Optional[int] = Field(None, ge=1)
    memory: Optional[int] = Field(None, ge=1)
    maxmemory: Optional[int] = Field(None, ge=1)
    enable_secure_boot: Optional[bool] = None
    enable_virtualization_extensions: Optional[bool] = None

    capabilities: List[Capability] = Field(default_factory=list)
    drives: List[DriveSpec] = Field(default_factory=list)
    networks: List[NetworkSpec] = Field(default_factory=list)
    variables: List[FodderVariable] = Field(default_factory=list)

    fodder: List[FodderItem] = Field(default_factory=list)
    genes: List[FodderItem] = Field(default_factory=list)

    guest: Optional[Literal["linux", "windows"]] = None
    auto_config: bool = Field(default=True)
    enable_winrm: bool = Field(default=True)
    auto_create_project: bool = Field(default=True)
    credentials: Credentials = Field(default_factory=Credentials)

    model_config = ConfigDict(extra="ignore")

    @property
    def effective_name(self) -> Optional[str]:
        return self.name or self.hostname

    def is_windows(self) -> bool:
        """Whether the catlet runs a Windows guest."""
        if self.guest:
            return self.guest == "windows"
        return bool(self.parent) and "win" in self.parent.lower()
