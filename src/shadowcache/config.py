"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments
  2. Environment variables  (SHADOWCACHE__CACHE__ROOT=/tmp/cache)
  3. shadowcache.yaml       (searched in cwd, then ~/.config/shadowcache/)
  4. Hardcoded defaults

The config file is optional — all fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("shadowcache")
_DEFAULT_CACHE_ROOT = str(Path(_DEFAULT_DATA_DIR) / "cache")


def _find_config_file() -> str | None:
    """Return the path of the first shadowcache.yaml found, or None."""
    candidates = [
        Path("shadowcache.yaml"),
        Path.home() / ".config" / "shadowcache" / "shadowcache.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Parent of the active directory; backups are created beside it.
    root: str = _DEFAULT_CACHE_ROOT
    active_dir_name: str = "Files"
    backup_retention: int = 5
    identifier_prefix: str = "fw_"
    identifier_width: int = 6
    identifier_max_attempts: int = 10_000

    @field_validator("active_dir_name")
    @classmethod
    def validate_active_dir_name(cls, v: str) -> str:
        v = v.strip()
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"Invalid active directory name: {v!r}")
        return v

    @field_validator("backup_retention", "identifier_max_attempts")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("identifier_width")
    @classmethod
    def validate_identifier_width(cls, v: int) -> int:
        if not 1 <= v <= 12:
            raise ValueError("identifier_width must be between 1 and 12")
        return v

    @property
    def root_path(self) -> Path:
        return Path(self.root).expanduser()

    @property
    def active_path(self) -> Path:
        return self.root_path / self.active_dir_name


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: SHADOWCACHE__CACHE__BACKUP_RETENTION=3
        env_prefix="SHADOWCACHE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
