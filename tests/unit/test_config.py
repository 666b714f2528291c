"""Unit tests for configuration defaults and overrides."""

from __future__ import annotations

import platformdirs
import pytest
from pydantic import ValidationError

from mountbuilder.config import (
    _DEFAULT_DATA_DIR,
    _DEFAULT_DB_PATH,
    _DEFAULT_SERVER_CACHE_PATH,
    ChapterCacheSettings,
    ServerCacheSettings,
    Settings,
    StorageSettings,
    SyncSettings,
)


class TestPlatformDefaults:
    def test_default_data_dir_matches_platformdirs(self) -> None:
        assert platformdirs.user_data_dir("mountbuilder") == _DEFAULT_DATA_DIR

    def test_database_paths_under_data_dir(self) -> None:
        assert _DEFAULT_DB_PATH.startswith(_DEFAULT_DATA_DIR)
        assert _DEFAULT_SERVER_CACHE_PATH.startswith(_DEFAULT_DATA_DIR)
        assert _DEFAULT_DB_PATH != _DEFAULT_SERVER_CACHE_PATH

    def test_storage_settings_use_platform_default(self) -> None:
        assert StorageSettings().db_path == _DEFAULT_DB_PATH


class TestDefaults:
    def test_cache_and_sync_defaults(self) -> None:
        settings = Settings()
        assert settings.chapter_cache.max_size == 500
        assert settings.chapter_cache.max_age_days == 30
        assert settings.search.fuzzy_threshold == 0.8
        assert settings.sync.api_base_url is None
        assert settings.sync.conflict_resolution == "local-first"


class TestEnvironmentOverrides:
    def test_nested_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MOUNTBUILDER__SYNC__PAGE_SIZE", "25")
        monkeypatch.setenv("MOUNTBUILDER__SYNC__CONFLICT_RESOLUTION", "cloud-first")
        settings = Settings()
        assert settings.sync.page_size == 25
        assert settings.sync.conflict_resolution == "cloud-first"


class TestValidation:
    def test_page_size_capped_at_one_hundred(self) -> None:
        with pytest.raises(ValidationError):
            SyncSettings(page_size=101)

    def test_unknown_conflict_policy(self) -> None:
        with pytest.raises(ValidationError):
            SyncSettings(conflict_resolution="newest-wins")  # type: ignore[arg-type]

    @pytest.mark.parametrize("days", [-1, 366])
    def test_cleanup_days_bounds(self, days: int) -> None:
        with pytest.raises(ValidationError):
            ServerCacheSettings(cleanup_days=days)

    def test_cache_size_positive(self) -> None:
        with pytest.raises(ValidationError):
            ChapterCacheSettings(max_size=0)
