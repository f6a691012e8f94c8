"""Configuration loading."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ruamel.yaml import YAML
from pydantic import ValidationError

from catlet.errors import ConfigurationError
from catlet.models.catlet import CatletDefinition
from catlet.models.config import SpawnConfig
from catlet.utils.templates import merge_dicts


logger = logging.getLogger(__name__)


CONFIG_DIR_ENV = "CATLET_CONFIG_DIR"
DEFAULT_CONFIG_DIR = "./config"


def default_config_dir() -> Path:
    """Config directory, honoring the CATLET_CONFIG_DIR override."""
    return Path(os.environ.get(CONFIG_DIR_ENV, DEFAULT_CONFIG_DIR))


class ConfigManager:
    """Loads the main configuration and the catlet definitions."""

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """Initialize configuration manager."""
        self.config_dir = Path(config_dir) if config_dir else default_config_dir()
        self.yaml = YAML(typ="safe", pure=True)
        self.config: Optional[SpawnConfig] = None
        self.catlets: Dict[str, CatletDefinition] = {}
        self.load_errors: Dict[str, str] = {}

    async def load(self):
        """Load all configuration files."""
        logger.info(f"Loading configuration from {self.config_dir}")

        await self._load_main_config()
        await self._load_catlets()

        logger.info(f"Configuration loaded successfully ({len(self.catlets)} catlets)")

    async def _load_main_config(self):
        """Load main configuration file; defaults when it is missing."""
        config_file = self.config_dir / "config.yaml"
        if not config_file.exists():
            logger.warning(f"Main config not found, using defaults: {config_file}")
            self.config = SpawnConfig()
            return

        try:
            data = await self._read_yaml(config_file) or {}
            self.config = SpawnConfig(**data)
            logger.debug(f"Loaded main config: {config_file}")
        except ValidationError as e:
            logger.error(f"Invalid main config: {e}")
            raise ConfigurationError(
                f"Invalid main config {config_file}",
                [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
            ) from e

    async def _load_catlets(self):
        """Load catlet definitions."""
        catlets_dir = self.config_dir / "catlets"
        if not catlets_dir.exists():
            logger.warning(f"Catlets directory not found: {catlets_dir}")
            return

        self.catlets.clear()
        self.load_errors.clear()
        for yaml_file in sorted(catlets_dir.glob("*.yaml")):
            try:
                data = await self._read_yaml(yaml_file) or {}
                self.catlets.update(self._parse_catlets(data))
                logger.debug(f"Loaded catlets from {yaml_file}")
            except Exception as e:
                self.load_errors[str(yaml_file)] = str(e)
                logger.error(f"Error loading {yaml_file}: {e}")

    def _parse_catlets(self, data: Dict[str, Any]) -> Dict[str, CatletDefinition]:
        defaults = data.get("defaults") or {}
        catlets = {}
        for name, spec in data.items():
            if name == "defaults":
                continue
            merged = merge_dicts(defaults, spec or {})
            merged.setdefault("name", name)
            catlets[name] = CatletDefinition(**merged)
        return catlets

    async def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse YAML file off the event loop."""
        content = await asyncio.to_thread(file_path.read_text)
        return self.yaml.load(content)

    @property
    def state_dir(self) -> Path:
        state_dir = Path(self.config.state_dir if self.config else SpawnConfig().state_dir)
        if not state_dir.is_absolute():
            state_dir = self.config_dir / state_dir
        return state_dir

    def get_definition(self, name: str) -> Optional[CatletDefinition]:
        """Get catlet definition by name."""
        return self.catlets.get(name)
