"""Local Bible chapter cache with TTL expiry and LRU eviction.

The whole store is persisted as a single JSON blob through a BlobStorage after
every mutation, next to a schema version marker. Two independent policies:

- TTL is checked lazily on ``get``: an entry older than ``max_age_ms`` is a
  miss, is deleted, and the deletion is persisted immediately.
- LRU is enforced eagerly on ``set``: inserting a new key into a full store
  evicts exactly one entry, the one with the oldest ``last_accessed``.

Storage failures never escape the cache. A quota failure drops the oldest
half of the entries and retries once; if that fails too, ``set`` reports
``False`` and the cache keeps serving from memory for the rest of the session.
"""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from pydantic import TypeAdapter, ValidationError

from mountbuilder.books import canonical_book
from mountbuilder.errors import ProviderError
from mountbuilder.models.cache import CacheEntry, CachedChapterInfo, CacheStats
from mountbuilder.storage import StorageError, StorageQuotaError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from mountbuilder.models.bible import Chapter
    from mountbuilder.protocols import BlobStorage, ChapterLoader

log = structlog.get_logger()

CACHE_KEY = "bible_chapter_cache"
CACHE_VERSION_KEY = "bible_cache_version"
CACHE_VERSION = "1.0"

DAY_MS = 24 * 60 * 60 * 1000
DEFAULT_MAX_AGE_MS = 30 * DAY_MS
DEFAULT_MAX_SIZE = 500
QUOTA_CLEANUP_FRACTION = 0.5

_STORE_ADAPTER: TypeAdapter[dict[str, CacheEntry]] = TypeAdapter(dict[str, CacheEntry])


def make_cache_key(book: str, chapter: int, translation: str) -> str:
    """``("1 John", 4, "KJV")`` → ``"1 john|4|kjv"``."""
    return f"{' '.join(book.split())}|{chapter}|{translation.strip()}".lower()


def epoch_ms() -> int:
    return int(time.time() * 1000)


class ChapterCache:
    """Bounded, TTL-expiring, LRU-evicting chapter cache."""

    def __init__(
        self,
        storage: BlobStorage,
        *,
        max_age_ms: int = DEFAULT_MAX_AGE_MS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._storage = storage
        self.max_age_ms = max_age_ms
        self.max_size = max_size
        self._clock = clock
        # Dict order doubles as recency order: hits and refreshes move a key
        # to the end, so LRU ties resolve to the least recently touched key.
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._saves = 0

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Restore the persisted store. Called once before first use.

        A missing or different schema version wipes the store before anything
        else is read. A corrupt blob is wiped as well.
        """
        try:
            saved_version = await self._storage.read_blob(CACHE_VERSION_KEY)
        except StorageError:
            log.warning("chapter_cache_load_error", exc_info=True)
            return

        if saved_version != CACHE_VERSION:
            log.info(
                "chapter_cache_version_mismatch",
                saved_version=saved_version,
                current_version=CACHE_VERSION,
            )
            await self.clear()
            try:
                await self._storage.write_blob(CACHE_VERSION_KEY, CACHE_VERSION)
            except StorageError:
                log.warning("chapter_cache_version_write_error", exc_info=True)
            return

        try:
            raw = await self._storage.read_blob(CACHE_KEY)
        except StorageError:
            log.warning("chapter_cache_load_error", exc_info=True)
            return

        if raw:
            try:
                self._entries = _STORE_ADAPTER.validate_json(raw)
            except ValidationError:
                log.warning("chapter_cache_corrupt", exc_info=True)
                await self.clear()
                return

        log.info("chapter_cache_loaded", entries=len(self._entries))

    # ------------------------------------------------------------------
    # Lookup and insert
    # ------------------------------------------------------------------

    async def get(self, book: str, chapter: int, translation: str) -> Chapter | None:
        """Return the cached chapter, or None on a miss or an expired entry."""
        key = make_cache_key(book, chapter, translation)
        entry = self._entries.get(key)

        if entry is None:
            self._misses += 1
            log.debug("cache_miss", key=key)
            return None

        now = self._clock()
        if now - entry.timestamp > self.max_age_ms:
            del self._entries[key]
            self._misses += 1
            log.info("cache_expired", key=key, age_ms=now - entry.timestamp)
            await self._persist()
            return None

        self._hits += 1
        entry.last_accessed = max(now, entry.timestamp)
        self._entries[key] = self._entries.pop(key)
        log.debug("cache_hit", key=key, hits=self._hits, misses=self._misses)
        return entry.value

    async def set(self, book: str, chapter: int, translation: str, value: Chapter) -> bool:
        """Insert or refresh a chapter. Returns whether it reached durable storage."""
        key = make_cache_key(book, chapter, translation)

        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            self._evict_lru()

        now = self._clock()
        self._entries[key] = CacheEntry(value=value, timestamp=now, last_accessed=now)
        self._saves += 1

        persisted = await self._persist()
        if persisted:
            log.debug("cache_set", key=key, entries=len(self._entries))
        return persisted

    def contains(self, book: str, chapter: int, translation: str) -> bool:
        """Whether a fresh entry exists. Does not touch stats or LRU order."""
        entry = self._entries.get(make_cache_key(book, chapter, translation))
        return entry is not None and self._clock() - entry.timestamp <= self.max_age_ms

    # ------------------------------------------------------------------
    # Eviction and persistence
    # ------------------------------------------------------------------

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        oldest_key = min(self._entries, key=lambda k: self._entries[k].last_accessed)
        del self._entries[oldest_key]
        log.info("cache_evicted", key=oldest_key)

    def _drop_oldest(self, fraction: float) -> int:
        """Remove ``floor(len * fraction)`` entries with the oldest ``last_accessed``."""
        count = int(len(self._entries) * fraction)
        if count == 0:
            return 0
        # sorted() is stable, so equal timestamps keep recency order
        by_age = sorted(self._entries, key=lambda k: self._entries[k].last_accessed)
        for key in by_age[:count]:
            del self._entries[key]
        log.info("cache_cleanup", removed=count, remaining=len(self._entries))
        return count

    async def _write(self) -> None:
        await self._storage.write_blob(CACHE_KEY, _STORE_ADAPTER.dump_json(self._entries).decode())

    async def _persist(self) -> bool:
        try:
            await self._write()
            return True
        except StorageQuotaError:
            log.warning("cache_quota_exceeded", entries=len(self._entries))
        except StorageError:
            log.warning("cache_persist_failed", exc_info=True)
            return False

        self._drop_oldest(QUOTA_CLEANUP_FRACTION)
        try:
            await self._write()
            return True
        except StorageError:
            log.warning("cache_persist_failed", after_cleanup=True, exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Maintenance and introspection
    # ------------------------------------------------------------------

    async def clear(self) -> None:
        """Drop every entry in memory and in durable storage."""
        self._entries = {}
        try:
            await self._storage.remove_blob(CACHE_KEY)
        except StorageError:
            log.warning("chapter_cache_clear_error", exc_info=True)
        log.info("chapter_cache_cleared")

    def stats(self) -> CacheStats:
        lookups = self._hits + self._misses
        hit_rate = f"{self._hits / lookups * 100:.1f}%" if lookups else "0%"
        return CacheStats(
            entries=len(self._entries),
            hits=self._hits,
            misses=self._misses,
            saves=self._saves,
            hit_rate=hit_rate,
            max_size=self.max_size,
            max_age_days=self.max_age_ms / DAY_MS,
        )

    def cached_chapters(self) -> list[CachedChapterInfo]:
        """List cached chapters, most recently used last."""
        now = self._clock()
        chapters: list[CachedChapterInfo] = []
        for key, entry in self._entries.items():
            book, chapter, translation = key.rsplit("|", 2)
            chapters.append(
                CachedChapterInfo(
                    book=canonical_book(book) or book,
                    chapter=int(chapter),
                    translation=translation.upper(),
                    age_days=(now - entry.timestamp) // DAY_MS,
                    last_accessed=datetime.fromtimestamp(entry.last_accessed / 1000, tz=UTC),
                )
            )
        return chapters

    async def preload(
        self,
        chapters: Iterable[tuple[str, int, str]],
        loader: ChapterLoader,
        *,
        delay_seconds: float = 0.1,
    ) -> int:
        """Warm the cache with ``chapters``, skipping those already cached.

        Provider failures are logged per chapter and do not stop the run.
        Returns the number of chapters loaded.
        """
        loaded = 0
        for book, chapter, translation in chapters:
            if self.contains(book, chapter, translation):
                continue
            try:
                value = await loader(book, chapter, translation)
            except ProviderError:
                log.warning(
                    "cache_preload_failed",
                    book=book,
                    chapter=chapter,
                    translation=translation,
                    exc_info=True,
                )
                continue
            await self.set(book, chapter, translation, value)
            loaded += 1
            if delay_seconds:
                await asyncio.sleep(delay_seconds)

        log.info("cache_preload_complete", loaded=loaded)
        return loaded
