"""Shared SQLite chapter cache for the backend.

Same key space as the local ChapterCache, but shared across users and not
bounded by entry count. Every read bumps an access counter used to rank
popular chapters; old entries are purged by age with ``clear_old``.

All cache operations catch ``aiosqlite.Error`` internally and degrade
gracefully: read failures return ``None`` (treated as cache miss by callers),
write failures are logged and ignored (fetched content is still returned).
Infrastructure errors never cross the ServerCache class boundary. Invalid
arguments do.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import aiosqlite
import structlog
from pydantic import ValidationError

from mountbuilder.chapter_cache import make_cache_key
from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.bible import Chapter
from mountbuilder.models.cache import PopularChapter, ServerCacheStats

log = structlog.get_logger()

MAX_CLEAR_OLD_DAYS = 365

_CREATE_CHAPTER_TABLE = """
CREATE TABLE IF NOT EXISTS bible_cache (
    cache_key      TEXT PRIMARY KEY,
    book           TEXT NOT NULL,
    chapter        INTEGER NOT NULL,
    translation    TEXT NOT NULL,
    data           TEXT NOT NULL,
    created_at     TEXT NOT NULL,
    last_accessed  TEXT NOT NULL,
    access_count   INTEGER NOT NULL DEFAULT 0
)
"""

_CREATE_CREATED_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_bible_cache_created ON bible_cache(created_at)"
)
_CREATE_POPULAR_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_bible_cache_popular ON bible_cache(access_count)"
)


def validate_days_old(days_old: object) -> int:
    """Return ``days_old`` if it is an integer in 0..365, else raise INVALID_INPUT."""
    if isinstance(days_old, bool) or not isinstance(days_old, int):
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=f"days_old must be an integer, got {days_old!r}",
            suggestion=f"Pass a whole number of days between 0 and {MAX_CLEAR_OLD_DAYS}.",
        )
    if not 0 <= days_old <= MAX_CLEAR_OLD_DAYS:
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=f"days_old must be between 0 and {MAX_CLEAR_OLD_DAYS}, got {days_old}",
            suggestion=f"Pass a whole number of days between 0 and {MAX_CLEAR_OLD_DAYS}.",
        )
    return days_old


class ServerCache:
    """SQLite-backed shared chapter cache."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_CHAPTER_TABLE)
        await self._db.execute(_CREATE_CREATED_INDEX)
        await self._db.execute(_CREATE_POPULAR_INDEX)
        await self._db.commit()

    async def close(self) -> None:
        await self._db.close()

    async def get(self, book: str, chapter: int, translation: str) -> Chapter | None:
        """Read a chapter and bump its access counter. ``None`` on miss or failure."""
        key = make_cache_key(book, chapter, translation)
        try:
            cursor = await self._db.execute(
                "SELECT data FROM bible_cache WHERE cache_key = ?",
                (key,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            await self._db.execute(
                "UPDATE bible_cache SET last_accessed = ?, access_count = access_count + 1 "
                "WHERE cache_key = ?",
                (datetime.now(UTC).isoformat(), key),
            )
            await self._db.commit()
            return Chapter.model_validate_json(row[0])
        except aiosqlite.Error:
            log.warning("server_cache_read_error", key=key, exc_info=True)
            return None
        except ValidationError:
            log.warning("server_cache_corrupt_entry", key=key, exc_info=True)
            return None

    async def set(self, book: str, chapter: int, translation: str, value: Chapter) -> None:
        """Upsert a chapter. A refresh also counts as an access. Non-fatal on failure."""
        key = make_cache_key(book, chapter, translation)
        try:
            now = datetime.now(UTC).isoformat()
            await self._db.execute(
                "INSERT INTO bible_cache "
                "(cache_key, book, chapter, translation, data, created_at, last_accessed) "
                "VALUES (?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(cache_key) DO UPDATE SET "
                "data = excluded.data, last_accessed = excluded.last_accessed, "
                "access_count = bible_cache.access_count + 1",
                (
                    key,
                    " ".join(book.split()),
                    chapter,
                    translation.strip().upper(),
                    value.model_dump_json(),
                    now,
                    now,
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("server_cache_write_error", key=key, exc_info=True)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def stats(self) -> ServerCacheStats:
        """Aggregate counters. Empty stats on failure."""
        try:
            cursor = await self._db.execute(
                "SELECT COUNT(*), COALESCE(SUM(access_count), 0), "
                "CAST(COALESCE(AVG(access_count), 0) AS INTEGER), MAX(last_accessed) "
                "FROM bible_cache"
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("server_cache_stats_error", exc_info=True)
            return ServerCacheStats()

        if row is None:
            return ServerCacheStats()
        return ServerCacheStats(
            total_entries=row[0],
            total_accesses=row[1],
            avg_accesses=row[2],
            most_recent_access=datetime.fromisoformat(row[3]) if row[3] else None,
        )

    async def most_popular(self, limit: int = 10) -> list[PopularChapter]:
        """Chapters ordered by access count, highest first."""
        try:
            cursor = await self._db.execute(
                "SELECT book, chapter, translation, access_count, last_accessed "
                "FROM bible_cache ORDER BY access_count DESC, last_accessed DESC LIMIT ?",
                (max(0, limit),),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            log.warning("server_cache_popular_error", exc_info=True)
            return []

        return [
            PopularChapter(
                book=row[0],
                chapter=row[1],
                translation=row[2],
                access_count=row[3],
                last_accessed=datetime.fromisoformat(row[4]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def clear_old(self, days_old: int = 30) -> int:
        """Delete entries created more than ``days_old`` days ago.

        Raises MountBuilderError(INVALID_INPUT) unless ``days_old`` is an
        integer in 0..365. Returns the number of deleted entries (0 on a
        database failure).
        """
        days = validate_days_old(days_old)
        cutoff = (datetime.now(UTC) - timedelta(days=days)).isoformat()
        try:
            cursor = await self._db.execute(
                "DELETE FROM bible_cache WHERE created_at < ?", (cutoff,)
            )
            deleted = cursor.rowcount
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("server_cache_cleanup_error", exc_info=True)
            return 0

        log.info("server_cache_cleanup_complete", days_old=days, deleted=deleted)
        return deleted

    async def clear_all(self) -> int:
        try:
            cursor = await self._db.execute("DELETE FROM bible_cache")
            deleted = cursor.rowcount
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("server_cache_clear_error", exc_info=True)
            return 0

        log.info("server_cache_cleared", deleted=deleted)
        return deleted
