"""Integration test fixtures.

Provides a fully wired AppState with in-memory storage, an in-memory SQLite
server cache, real providers (HTTP mocked with respx in the tests) and a fake
remote sermon store.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from mountbuilder.bible_service import BibleService
from mountbuilder.config import Settings
from mountbuilder.search import SearchEngine
from mountbuilder.state import AppState
from mountbuilder.sync import SyncCoordinator

if TYPE_CHECKING:
    from pathlib import Path

    import httpx

    from mountbuilder.chapter_cache import ChapterCache
    from mountbuilder.library import SermonLibrary
    from mountbuilder.models.sermon import SermonRecord
    from mountbuilder.providers import ProviderSelector
    from mountbuilder.server_cache import ServerCache
    from mountbuilder.storage import MemoryBlobStorage
    from tests.conftest import FakeRemoteStore


@pytest.fixture()
def bible(
    selector: ProviderSelector, chapter_cache: ChapterCache, server_cache: ServerCache
) -> BibleService:
    return BibleService(selector, chapter_cache, server_cache)


@pytest.fixture()
async def app_state(
    http_client: httpx.AsyncClient,
    storage: MemoryBlobStorage,
    chapter_cache: ChapterCache,
    server_cache: ServerCache,
    bible: BibleService,
    library: SermonLibrary,
    sermons: list[SermonRecord],
    remote: FakeRemoteStore,
) -> AppState:
    for sermon in sermons:
        await library.add(sermon)
    return AppState(
        settings=Settings(),
        storage=storage,
        chapter_cache=chapter_cache,
        bible=bible,
        search=SearchEngine(storage),
        library=library,
        http_client=http_client,
        server_cache=server_cache,
        sync=SyncCoordinator(remote),
    )


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests.

    Points every database at an isolated tmp directory. Sync stays
    unconfigured unless a local mountbuilder.yaml enables it.
    """
    env = os.environ.copy()
    env["MOUNTBUILDER__STORAGE__DB_PATH"] = str(tmp_path / "mountbuilder.db")
    env["MOUNTBUILDER__SERVER_CACHE__DB_PATH"] = str(tmp_path / "server-cache.db")
    env["MOUNTBUILDER__LOGGING__LEVEL"] = "WARNING"
    env.pop("MOUNTBUILDER__SYNC__API_BASE_URL", None)
    return env
