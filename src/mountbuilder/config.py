"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (MOUNTBUILDER__CHAPTER_CACHE__MAX_SIZE=200)
  2. mountbuilder.yaml      (searched in cwd, then platform config dir)
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

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("mountbuilder")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "mountbuilder.db")
_DEFAULT_SERVER_CACHE_PATH = str(Path(_DEFAULT_DATA_DIR) / "server-cache.db")

ConflictResolution = Literal["local-first", "cloud-first"]


def _find_config_file() -> str | None:
    """Return the path of the first mountbuilder.yaml found, or None."""
    candidates = [
        Path("mountbuilder.yaml"),
        Path(platformdirs.user_config_dir("mountbuilder")) / "mountbuilder.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class StorageSettings(BaseModel):
    db_path: str = _DEFAULT_DB_PATH
    # Byte quota for the local blob store; None means bounded only by disk.
    max_bytes: int | None = None


class ChapterCacheSettings(BaseModel):
    max_age_days: int = Field(default=30, ge=1)
    max_size: int = Field(default=500, ge=1)


class ServerCacheSettings(BaseModel):
    db_path: str = _DEFAULT_SERVER_CACHE_PATH
    cleanup_days: int = Field(default=30, ge=0, le=365)


class ProviderSettings(BaseModel):
    primary_base_url: str = "https://bible-api.com/"
    secondary_base_url: str = "https://bolls.life/"
    default_translation: str = "WEB"
    timeout_seconds: float = 10.0


class SearchSettings(BaseModel):
    history_size: int = Field(default=10, ge=1)
    fuzzy_threshold: float = Field(default=0.8, ge=0.0, le=1.0)


class SyncSettings(BaseModel):
    api_base_url: str | None = None
    api_token: str | None = None
    conflict_resolution: ConflictResolution = "local-first"
    page_size: int = Field(default=100, ge=1, le=100)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: MOUNTBUILDER__SYNC__PAGE_SIZE=50
        env_prefix="MOUNTBUILDER__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    storage: StorageSettings = StorageSettings()
    chapter_cache: ChapterCacheSettings = ChapterCacheSettings()
    server_cache: ServerCacheSettings = ServerCacheSettings()
    providers: ProviderSettings = ProviderSettings()
    search: SearchSettings = SearchSettings()
    sync: SyncSettings = SyncSettings()
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
