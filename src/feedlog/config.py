"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (FEEDLOG__FETCHER__CHUNK_SIZE=20)
  2. feedlog.yaml           (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_CACHE_DIR = platformdirs.user_cache_dir("feedlog")


def _find_config_file() -> str | None:
    """Return the path of the first feedlog.yaml found, or None."""
    candidates = [
        Path("feedlog.yaml"),
        Path(platformdirs.user_config_dir("feedlog")) / "feedlog.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class CacheSettings(BaseModel):
    dir: str = _DEFAULT_CACHE_DIR
    metadata_file: str = "last-updated.kv"
    items_file: str = "allitems.ndjson"
    compact_on_load: bool = True

    @property
    def cache_dir(self) -> Path:
        return Path(self.dir).expanduser()

    @property
    def metadata_path(self) -> Path:
        return self.cache_dir / self.metadata_file

    @property
    def items_path(self) -> Path:
        return self.cache_dir / self.items_file


class FetcherSettings(BaseModel):
    chunk_size: int = Field(default=10, ge=1)
    force: bool = False
    timeout_seconds: float = 30.0
    user_agent: str = "feedlog/1.0"


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: FEEDLOG__CACHE__DIR=/tmp/feeds
        env_prefix="FEEDLOG__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    cache: CacheSettings = CacheSettings()
    fetcher: FetcherSettings = FetcherSettings()
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
