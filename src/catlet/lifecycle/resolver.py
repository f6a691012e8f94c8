"""Configuration resolution: declaration plus fodder into a creation request."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from catlet.errors import ConfigurationError
from catlet.models.catlet import (
    Capability,
    CatletDefinition,
    CatletSpec,
    CpuSpec,
    MemorySpec,
)
from catlet.models.fodder import FodderItem


logger = logging.getLogger(__name__)


FodderInput = Union[FodderItem, Dict[str, Any]]


def _coerce_fodder(items: Optional[Iterable[FodderInput]]) -> List[FodderItem]:
    result = []
    for item in items or []:
        if isinstance(item, FodderItem):
            result.append(item)
            continue
        try:
            result.append(FodderItem.model_validate(item))
        except ValidationError as e:
            raise ConfigurationError("Malformed fodder item", [str(err["msg"]) for err in e.errors()]) from e
    return result


def merge_fodder(
    auto_fodder: Sequence[FodderInput],
    user_fodder: Sequence[FodderInput] = (),
    genes: Sequence[FodderInput] = (),
) -> List[FodderItem]:
    """Merge auto-generated, gene and user fodder.

    Genes are deduplicated by source and appended after the auto items.
    User items then replace the item with the same identity key in place,
    or are appended.
    """
    merged = _coerce_fodder(auto_fodder)

    for gene in _coerce_fodder(genes):
        if not any(item.source == gene.source for item in merged):
            merged.append(gene)

    for user_item in _coerce_fodder(user_fodder):
        key = user_item.identity_key()
        for index, item in enumerate(merged):
            if item.identity_key() == key:
                merged[index] = user_item
                break
        else:
            merged.append(user_item)

    return merged


class ConfigurationResolver:
    """Turns a catlet declaration into one canonical CatletSpec."""

    def resolve(
        self,
        definition: Union[CatletDefinition, Dict[str, Any]],
        auto_fodder: Sequence[FodderInput] = (),
    ) -> CatletSpec:
        """Resolve a declaration and its auto-generated fodder."""
        definition = self._coerce_definition(definition)

        missing = []
        if not definition.effective_name:
            missing.append("name is required")
        if not definition.parent:
            missing.append("parent is required")
        if missing:
            raise ConfigurationError("Invalid catlet configuration", missing)

        if definition.auto_config:
            fodder = merge_fodder(auto_fodder, definition.fodder, definition.genes)
        else:
            fodder = _coerce_fodder(definition.fodder)

        try:
            spec = CatletSpec(
                name=definition.effective_name,
                project=definition.project,
                parent=definition.parent,
                hostname=definition.hostname,
                location=definition.location,
                environment=definition.environment,
                store=definition.store,
                cpu=CpuSpec(count=definition.cpus) if definition.cpus else None,
                memory=self._memory(definition),
                capabilities=self._capabilities(definition),
                drives=definition.drives,
                networks=definition.networks,
                fodder=fodder,
                variables=definition.variables,
            )
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid catlet configuration for {definition.effective_name}",
                [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
            ) from e

        logger.debug(f"Resolved catlet {spec.name} with {len(spec.fodder)} fodder entries")
        return spec

    def _coerce_definition(self, definition: Union[CatletDefinition, Dict[str, Any]]) -> CatletDefinition:
        if isinstance(definition, CatletDefinition):
            return definition
        try:
            return CatletDefinition.model_validate(definition)
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid catlet configuration",
                [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
            ) from e

    def _memory(self, definition: CatletDefinition) -> Optional[MemorySpec]:
        if definition.memory is None and definition.maxmemory is None:
            return None
        return MemorySpec(startup=definition.memory, maximum=definition.maxmemory)

    def _capabilities(self, definition: CatletDefinition) -> List[Capability]:
        capabilities = list(definition.capabilities)

        def toggle(name: str, enabled: Optional[bool]):
            if enabled is None:
                return
            capabilities[:] = [c for c in capabilities if c.name != name]
            if enabled:
                capabilities.append(Capability(name=name))

        # maximum memory implies dynamic memory
        if definition.maxmemory is not None:
            toggle("dynamic_memory", True)
        toggle("secure_boot", definition.enable_secure_boot)
        toggle("nested_virtualization", definition.enable_virtualization_extensions)

        return capabilities
