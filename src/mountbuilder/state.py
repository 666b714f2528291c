"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object.
There are no module-level singletons: every component reaches its
collaborators through this object.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from mountbuilder.bible_service import BibleService
    from mountbuilder.chapter_cache import ChapterCache
    from mountbuilder.config import Settings
    from mountbuilder.library import SermonLibrary
    from mountbuilder.protocols import BlobStorage
    from mountbuilder.search import SearchEngine
    from mountbuilder.server_cache import ServerCache
    from mountbuilder.sync import SyncCoordinator


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    storage: BlobStorage
    chapter_cache: ChapterCache
    bible: BibleService
    search: SearchEngine
    library: SermonLibrary

    http_client: httpx.AsyncClient | None = None
    server_cache: ServerCache | None = None
    # None when no sync API is configured
    sync: SyncCoordinator | None = None
