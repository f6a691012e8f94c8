"""Configuration models."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiConfig(BaseModel):
    """Compute API connection settings."""
    endpoint: str = Field(default="https://localhost:8000")
    token: Optional[str] = Field(None, description="Bearer token for the compute API")
    ssl_verify: bool = Field(default=False)
    ssl_ca_file: Optional[str] = None
    request_timeout: float = Field(default=30.0, gt=0)


class OperationsConfig(BaseModel):
    """Operation tracking settings."""
    timeout: float = Field(default=600.0, gt=0)
    poll_interval: float = Field(default=1.0, gt=0)


class SpawnConfig(BaseModel):
    """Main configuration model."""
    api: ApiConfig = Field(default_factory=ApiConfig)
    operations: OperationsConfig = Field(default_factory=OperationsConfig)
    log_level: str = Field(default="INFO")
    state_dir: str = Field(default="./state")

    model_config = ConfigDict(extra="ignore")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()
