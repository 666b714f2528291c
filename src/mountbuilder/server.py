"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Start the stdio transport
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import mountbuilder.tools.add_sermon as t_add
import mountbuilder.tools.cache_stats as t_cache_stats
import mountbuilder.tools.clear_server_cache as t_clear_server_cache
import mountbuilder.tools.delete_sermon as t_delete
import mountbuilder.tools.filter_sermons as t_filter
import mountbuilder.tools.get_chapter as t_get_chapter
import mountbuilder.tools.lookup_passage as t_lookup
import mountbuilder.tools.migrate_sermons as t_migrate
import mountbuilder.tools.preload_chapters as t_preload
import mountbuilder.tools.search_sermons as t_search
import mountbuilder.tools.sermon_suggestions as t_suggestions
import mountbuilder.tools.sync_sermons as t_sync
import mountbuilder.tools.sync_status as t_sync_status
import mountbuilder.tools.update_sermon as t_update
from mountbuilder import __version__
from mountbuilder.bible_service import BibleService
from mountbuilder.chapter_cache import DAY_MS, ChapterCache
from mountbuilder.config import Settings
from mountbuilder.errors import MountBuilderError
from mountbuilder.fetcher import build_http_client
from mountbuilder.library import SermonLibrary
from mountbuilder.providers import BibleApiProvider, BollsProvider, ProviderSelector
from mountbuilder.remote_store import HttpSermonStore
from mountbuilder.schedulers import run_server_cache_cleanup
from mountbuilder.search import SearchEngine
from mountbuilder.server_cache import ServerCache
from mountbuilder.state import AppState
from mountbuilder.storage import SqliteBlobStorage
from mountbuilder.sync import SyncCoordinator

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout carries the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


async def _connect(db_path: str) -> aiosqlite.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return await aiosqlite.connect(str(path))


async def build_state(settings: Settings) -> AppState:
    """Construct and initialise every component. The caller owns teardown."""
    http_client = build_http_client(settings.providers)

    storage_db = await _connect(settings.storage.db_path)
    storage = SqliteBlobStorage(storage_db, max_bytes=settings.storage.max_bytes)
    await storage.init_db()

    server_db = await _connect(settings.server_cache.db_path)
    server_cache = ServerCache(server_db)
    await server_cache.init_db()

    chapter_cache = ChapterCache(
        storage,
        max_age_ms=settings.chapter_cache.max_age_days * DAY_MS,
        max_size=settings.chapter_cache.max_size,
    )
    await chapter_cache.load()

    selector = ProviderSelector(
        primary=BibleApiProvider(http_client, settings.providers.primary_base_url),
        secondary=BollsProvider(http_client, settings.providers.secondary_base_url),
        default_translation=settings.providers.default_translation,
    )

    search = SearchEngine(
        storage,
        history_size=settings.search.history_size,
        fuzzy_threshold=settings.search.fuzzy_threshold,
    )
    await search.load_history()

    library = SermonLibrary(storage)
    await library.load()

    sync = None
    if settings.sync.api_base_url:
        sync = SyncCoordinator(
            HttpSermonStore(http_client, settings.sync.api_base_url, settings.sync.api_token),
            storage=storage,
            conflict_resolution=settings.sync.conflict_resolution,
            page_size=settings.sync.page_size,
        )
        await sync.load_state()

    return AppState(
        settings=settings,
        storage=storage,
        chapter_cache=chapter_cache,
        bible=BibleService(selector, chapter_cache, server_cache),
        search=search,
        library=library,
        http_client=http_client,
        server_cache=server_cache,
        sync=sync,
    )


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)
    log.info("server_starting", version=__version__)

    state = await build_state(settings)
    cleanup_task = asyncio.create_task(run_server_cache_cleanup(state))

    log.info(
        "server_started",
        version=__version__,
        cached_chapters=len(state.chapter_cache),
        sermons=len(state.library),
        sync_enabled=state.sync is not None,
    )

    try:
        yield state
    finally:
        cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup_task
        if state.http_client is not None:
            await state.http_client.aclose()
        await state.storage.close()
        if state.server_cache is not None:
            await state.server_cache.close()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("mountbuilder", lifespan=lifespan)
# FastMCP doesn't expose a version kwarg; set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: MountBuilderError) -> CallToolResult:
    """Convert a MountBuilderError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


def _log_tool_error(tool: str, exc: MountBuilderError) -> None:
    log.warning(
        "tool_error",
        tool=tool,
        code=exc.code,
        message=exc.message,
        recoverable=exc.recoverable,
    )


@mcp.tool()
async def lookup_passage(reference: str, ctx: Context, translation: str = "WEB") -> object:
    """Look up a scripture reference such as 'John 3:16' and return its chapter text."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_lookup.handle(reference, translation, state)
    except MountBuilderError as exc:
        _log_tool_error("lookup_passage", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="lookup_passage", exc_info=True)
        raise


@mcp.tool()
async def get_chapter(book: str, chapter: int, ctx: Context, translation: str = "WEB") -> object:
    """Fetch one Bible chapter.

    Translations WEB, KJV, ASV, BBE, NKJV, ESV and NLT are served; any other
    code falls back to WEB and the response reports the substitution.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_get_chapter.handle(book, chapter, translation, state)
    except MountBuilderError as exc:
        _log_tool_error("get_chapter", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="get_chapter", exc_info=True)
        raise


@mcp.tool()
async def search_sermons(
    query: str,
    ctx: Context,
    min_relevance: int = 0,
    fuzzy: bool = True,
    limit: int = 20,
) -> object:
    """Search the local sermon library with typo-tolerant, weighted ranking."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_search.handle(query, min_relevance, fuzzy, limit, state)
    except MountBuilderError as exc:
        _log_tool_error("search_sermons", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="search_sermons", exc_info=True)
        raise


@mcp.tool()
async def sync_sermons(ctx: Context) -> object:
    """Reconcile the local sermon library with the remote sermon store."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_sync.handle(state)
    except MountBuilderError as exc:
        _log_tool_error("sync_sermons", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="sync_sermons", exc_info=True)
        raise


@mcp.tool()
async def cache_stats(ctx: Context) -> object:
    """Report local and shared chapter cache statistics."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_cache_stats.handle(state)
    except MountBuilderError as exc:
        _log_tool_error("cache_stats", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="cache_stats", exc_info=True)
        raise


@mcp.tool()
async def sync_status(ctx: Context) -> object:
    """Report when the library last synced and how many sermons still need it."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_sync_status.handle(state)
    except MountBuilderError as exc:
        _log_tool_error("sync_status", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="sync_status", exc_info=True)
        raise


@mcp.tool()
async def migrate_sermons(ctx: Context) -> object:
    """Bulk-upload every sermon that has never been synced, 100 per request."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_migrate.handle(state)
    except MountBuilderError as exc:
        _log_tool_error("migrate_sermons", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="migrate_sermons", exc_info=True)
        raise


@mcp.tool()
async def add_sermon(
    title: str,
    ctx: Context,
    speaker: str = "",
    series: str = "",
    verse_reference: str = "",
    notes: str = "",
    date: str | None = None,
    tags: list[str] | None = None,
) -> object:
    """Save a sermon to the local library. Dates are YYYY-MM-DD."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_add.handle(
            title, speaker, series, verse_reference, notes, date, tags or [], state
        )
    except MountBuilderError as exc:
        _log_tool_error("add_sermon", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="add_sermon", exc_info=True)
        raise


@mcp.tool()
async def update_sermon(
    sermon_id: str,
    ctx: Context,
    title: str | None = None,
    speaker: str | None = None,
    series: str | None = None,
    verse_reference: str | None = None,
    notes: str | None = None,
    date: str | None = None,
    tags: list[str] | None = None,
) -> object:
    """Change fields of a saved sermon. Omitted fields keep their value."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_update.handle(
            sermon_id, title, speaker, series, verse_reference, notes, date, tags, state
        )
    except MountBuilderError as exc:
        _log_tool_error("update_sermon", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="update_sermon", exc_info=True)
        raise


@mcp.tool()
async def delete_sermon(sermon_id: str, ctx: Context) -> object:
    """Delete a sermon locally and, when sync is configured, remotely."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_delete.handle(sermon_id, state)
    except MountBuilderError as exc:
        _log_tool_error("delete_sermon", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="delete_sermon", exc_info=True)
        raise


@mcp.tool()
async def filter_sermons(
    ctx: Context,
    query: str = "",
    speaker: str = "",
    series: str = "",
    date_from: str | None = None,
    date_to: str | None = None,
    has_verse: bool | None = None,
    tags: list[str] | None = None,
    sort_by: str = "relevance",
    limit: int = 20,
) -> object:
    """Filter sermons by speaker, series, date range, verse and tags.

    sort_by is relevance (needs a query), date-desc, date-asc or title.
    """
    state: AppState = ctx.request_context.lifespan_context
    arguments = {
        "query": query,
        "speaker": speaker,
        "series": series,
        "date_from": date_from,
        "date_to": date_to,
        "has_verse": has_verse,
        "tags": tags or [],
        "sort_by": sort_by,
        "limit": limit,
    }
    try:
        return await t_filter.handle(arguments, state)
    except MountBuilderError as exc:
        _log_tool_error("filter_sermons", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="filter_sermons", exc_info=True)
        raise


@mcp.tool()
async def sermon_suggestions(ctx: Context, query: str = "", limit: int = 5) -> object:
    """Suggest speakers, series and title words; short queries get recent searches."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_suggestions.handle(query, limit, state)
    except MountBuilderError as exc:
        _log_tool_error("sermon_suggestions", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="sermon_suggestions", exc_info=True)
        raise


@mcp.tool()
async def clear_search_history(ctx: Context) -> object:
    """Forget the recent sermon searches."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_suggestions.handle_clear_history(state)
    except MountBuilderError as exc:
        _log_tool_error("clear_search_history", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="clear_search_history", exc_info=True)
        raise


@mcp.tool()
async def preload_chapters(
    references: list[str], ctx: Context, translation: str = "WEB"
) -> object:
    """Cache the chapters of up to 50 references, e.g. ['Psalm 23', 'John 3'], for offline use."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_preload.handle(references, translation, state)
    except MountBuilderError as exc:
        _log_tool_error("preload_chapters", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="preload_chapters", exc_info=True)
        raise


@mcp.tool()
async def clear_server_cache(ctx: Context, days_old: int = 30) -> object:
    """Remove shared chapter cache entries older than days_old (0-365; 0 clears all)."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_clear_server_cache.handle(days_old, state)
    except MountBuilderError as exc:
        _log_tool_error("clear_server_cache", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="clear_server_cache", exc_info=True)
        raise


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
