"""Configuration management with Pydantic models and TOML loading."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from farmintel.core.exceptions import ConfigError


class IntelSettings(BaseModel):
    """Thresholds for the auto-management rules and the cleanup sweep.

    Persisted alongside the target data, so field names also have camelCase
    aliases matching the stored blob.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    cleanup_days: float = Field(default=14, gt=0)
    max_empty_before_pause: int = Field(default=3, ge=1)
    max_losses_before_blacklist: int = Field(default=2, ge=1)
    dry_pause_hours: float = Field(default=2, ge=0)

    def merged(self, overrides: dict[str, Any] | None) -> IntelSettings:
        """Return a copy with ``overrides`` applied on top; unknown keys are ignored."""
        if not overrides:
            return self.model_copy()
        data = self.model_dump()
        for key, value in overrides.items():
            field = key if key in IntelSettings.model_fields else _field_for_alias(key)
            if field is not None and value is not None:
                data[field] = value
        return IntelSettings.model_validate(data)


def _field_for_alias(alias: str) -> str | None:
    for name, info in IntelSettings.model_fields.items():
        if info.alias == alias:
            return name
    return None


class StorageConfig(BaseModel):
    db_path: Path | None = None  # None = data/<profile>/farmintel.db


class LoggingConfig(BaseModel):
    console_level: str = "INFO"
    file_level: str = "DEBUG"


class AppConfig(BaseModel):
    server_key: str = "default"
    intel: IntelSettings = Field(default_factory=IntelSettings)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: Path) -> AppConfig:
    """Load configuration from a TOML file, falling back to defaults."""
    if not path.exists():
        return AppConfig()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return AppConfig(**data)
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e
