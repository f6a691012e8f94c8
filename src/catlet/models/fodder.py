"""Fodder (bootstrap configuration) models."""

import io
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from ruamel.yaml import YAML


class FodderType(str, Enum):
    """Content type tag of an inline fodder item."""
    CLOUD_CONFIG = "cloud-config"
    SHELL_SCRIPT = "shellscript"
    BOOT_HOOK = "cloud-boothook"
    CONFIG_ARCHIVE = "cloud-config-archive"


class FodderVariable(BaseModel):
    """Named variable passed to a gene fodder reference."""
    name: str = Field(..., description="Variable name")
    value: Optional[str] = None
    secret: bool = Field(default=False)

    model_config = ConfigDict(extra="forbid")


class FodderItem(BaseModel):
    """One unit of machine bootstrap configuration.

    Either inline ``content`` (with a ``type``) or a gene ``source``
    reference, never both.
    """
    name: Optional[str] = None
    type: Optional[FodderType] = None
    content: Optional[Union[Dict[str, Any], List[Any], str]] = None
    source: Optional[str] = Field(None, description="Gene reference, e.g. gene:dbosoft/starter-food:linux-starter")
    variables: List[FodderVariable] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def check_shape(self):
        """Enforce the inline/gene exclusivity rules."""
        if self.source and self.content is not None:
            raise ValueError(f"fodder '{self.name or self.source}' sets both source and content")
        if not self.source:
            if not self.name:
                raise ValueError("inline fodder requires a name")
            if self.content is None:
                raise ValueError(f"fodder '{self.name}' has neither content nor source")
            if self.type is None:
                if not isinstance(self.content, dict):
                    raise ValueError(f"fodder '{self.name}' requires a type")
                self.type = FodderType.CLOUD_CONFIG
        return self

    @classmethod
    def from_gene(
        cls,
        geneset: str,
        gene: str,
        name: Optional[str] = None,
        variables: Optional[List[FodderVariable]] = None,
    ) -> "FodderItem":
        """Build a fodder reference to ``gene:<geneset>:<gene>``."""
        return cls(name=name, source=f"gene:{geneset}:{gene}", variables=variables or [])

    @property
    def is_gene(self) -> bool:
        return self.source is not None

    def identity_key(self) -> str:
        """Key used to decide whether two items describe the same fodder."""
        if self.source and self.name:
            return f"{self.source}:{self.name}"
        if self.source:
            return self.source
        return self.name

    def to_request(self) -> Dict[str, Any]:
        """Render the item as sent to the compute API."""
        data: Dict[str, Any] = {}
        if self.name:
            data["name"] = self.name
        if self.source:
            data["source"] = self.source
        if self.type:
            data["type"] = self.type.value
        if self.content is not None:
            data["content"] = serialize_content(self.content)
        if self.variables:
            data["variables"] = [v.model_dump(exclude_none=True) for v in self.variables]
        return data


def _sorted(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _sorted(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_sorted(v) for v in value]
    return value


def serialize_content(content: Union[Dict[str, Any], List[Any], str]) -> str:
    """Serialize fodder content to text with stable key ordering."""
    if isinstance(content, str):
        return content

    yaml = YAML(typ="safe", pure=True)
    yaml.default_flow_style = False
    stream = io.StringIO()
    yaml.dump(_sorted(content), stream)
    return stream.getvalue()
