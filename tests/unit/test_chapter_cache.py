"""Unit tests for mountbuilder.chapter_cache."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from mountbuilder.chapter_cache import (
    CACHE_KEY,
    CACHE_VERSION,
    CACHE_VERSION_KEY,
    DAY_MS,
    ChapterCache,
    make_cache_key,
)
from mountbuilder.errors import ProviderError
from mountbuilder.models.bible import Chapter
from mountbuilder.storage import MemoryBlobStorage, StorageError
from tests.conftest import FakeClock, make_chapter

if TYPE_CHECKING:
    from mountbuilder.protocols import ChapterLoader


class FailingStorage(MemoryBlobStorage):
    """Every write fails with a non-quota error."""

    async def write_blob(self, key: str, value: str) -> None:
        raise StorageError("disk on fire")


class TestCacheKey:
    def test_lowercased_pipe_joined(self) -> None:
        assert make_cache_key("1 John", 4, "KJV") == "1 john|4|kjv"

    def test_case_insensitive(self) -> None:
        assert make_cache_key("JOHN", 3, "web") == make_cache_key("john", 3, "WEB")


# ---------------------------------------------------------------------------
# get / set
# ---------------------------------------------------------------------------


class TestGetSet:
    async def test_round_trip(self, chapter_cache: ChapterCache) -> None:
        value = make_chapter()
        assert await chapter_cache.set("John", 3, "WEB", value) is True
        assert await chapter_cache.get("John", 3, "WEB") == value

    async def test_miss(self, chapter_cache: ChapterCache) -> None:
        assert await chapter_cache.get("John", 3, "WEB") is None
        assert chapter_cache.stats().misses == 1

    async def test_lookup_is_case_insensitive(self, chapter_cache: ChapterCache) -> None:
        await chapter_cache.set("John", 3, "WEB", make_chapter())
        assert await chapter_cache.get("john", 3, "web") is not None

    async def test_set_persists_before_returning(
        self, chapter_cache: ChapterCache, storage: MemoryBlobStorage
    ) -> None:
        await chapter_cache.set("John", 3, "WEB", make_chapter())
        raw = await storage.read_blob(CACHE_KEY)
        assert raw is not None
        assert "john|3|web" in json.loads(raw)

    async def test_refresh_replaces_value(self, chapter_cache: ChapterCache) -> None:
        await chapter_cache.set("John", 3, "WEB", make_chapter(text="old"))
        await chapter_cache.set("John", 3, "WEB", make_chapter(text="new"))
        cached = await chapter_cache.get("John", 3, "WEB")
        assert cached is not None
        assert cached.text == "new"
        assert len(chapter_cache) == 1


# ---------------------------------------------------------------------------
# TTL
# ---------------------------------------------------------------------------


class TestExpiry:
    async def test_entry_older_than_max_age_is_a_miss(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        cache = ChapterCache(storage, max_age_ms=1000, clock=clock)
        await cache.set("John", 3, "WEB", make_chapter())

        clock.advance(1001)

        assert await cache.get("John", 3, "WEB") is None
        assert len(cache) == 0
        assert cache.stats().misses == 1

    async def test_expired_deletion_is_persisted(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        cache = ChapterCache(storage, max_age_ms=1000, clock=clock)
        await cache.set("John", 3, "WEB", make_chapter())
        clock.advance(1001)
        await cache.get("John", 3, "WEB")

        raw = await storage.read_blob(CACHE_KEY)
        assert raw is not None
        assert json.loads(raw) == {}

    async def test_entry_at_exactly_max_age_is_fresh(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        cache = ChapterCache(storage, max_age_ms=1000, clock=clock)
        await cache.set("John", 3, "WEB", make_chapter())
        clock.advance(1000)
        assert await cache.get("John", 3, "WEB") is not None

    async def test_hit_does_not_extend_lifetime(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        cache = ChapterCache(storage, max_age_ms=1000, clock=clock)
        await cache.set("John", 3, "WEB", make_chapter())
        clock.advance(900)
        assert await cache.get("John", 3, "WEB") is not None
        clock.advance(200)
        assert await cache.get("John", 3, "WEB") is None


# ---------------------------------------------------------------------------
# LRU
# ---------------------------------------------------------------------------


class TestEviction:
    async def test_least_recently_used_is_evicted(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        cache = ChapterCache(storage, max_size=2, clock=clock)
        await cache.set("Genesis", 1, "WEB", make_chapter("Genesis 1"))
        clock.advance(10)
        await cache.set("Genesis", 2, "WEB", make_chapter("Genesis 2"))
        clock.advance(10)
        await cache.get("Genesis", 1, "WEB")
        clock.advance(10)
        await cache.set("Genesis", 3, "WEB", make_chapter("Genesis 3"))

        assert cache.contains("Genesis", 1, "WEB")
        assert not cache.contains("Genesis", 2, "WEB")
        assert cache.contains("Genesis", 3, "WEB")

    async def test_ties_resolve_by_recency(self, storage: MemoryBlobStorage) -> None:
        frozen = FakeClock()
        cache = ChapterCache(storage, max_size=2, clock=frozen)
        await cache.set("Genesis", 1, "WEB", make_chapter("Genesis 1"))
        await cache.set("Genesis", 2, "WEB", make_chapter("Genesis 2"))
        await cache.get("Genesis", 1, "WEB")
        await cache.set("Genesis", 3, "WEB", make_chapter("Genesis 3"))

        assert cache.contains("Genesis", 1, "WEB")
        assert not cache.contains("Genesis", 2, "WEB")

    async def test_promoted_entry_survives_many_inserts(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        cache = ChapterCache(storage, max_size=3, clock=clock)
        await cache.set("Psalms", 23, "WEB", make_chapter("Psalms 23"))
        for chapter in range(1, 6):
            clock.advance(10)
            assert await cache.get("Psalms", 23, "WEB") is not None
            clock.advance(10)
            await cache.set("Genesis", chapter, "WEB", make_chapter(f"Genesis {chapter}"))

        assert cache.contains("Psalms", 23, "WEB")
        assert len(cache) == 3

    async def test_refresh_of_existing_key_never_evicts(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        cache = ChapterCache(storage, max_size=2, clock=clock)
        await cache.set("Genesis", 1, "WEB", make_chapter())
        await cache.set("Genesis", 2, "WEB", make_chapter())
        await cache.set("Genesis", 2, "WEB", make_chapter(text="again"))
        assert len(cache) == 2
        assert cache.contains("Genesis", 1, "WEB")

    def test_max_size_must_be_positive(self, storage: MemoryBlobStorage) -> None:
        with pytest.raises(ValueError):
            ChapterCache(storage, max_size=0)


# ---------------------------------------------------------------------------
# Storage failures
# ---------------------------------------------------------------------------


class TestPersistenceFailures:
    async def test_quota_drops_half_and_retries(self, clock: FakeClock) -> None:
        big = "x" * 400
        storage = MemoryBlobStorage(max_bytes=2500)
        cache = ChapterCache(storage, clock=clock)

        results = []
        for chapter in range(1, 8):
            clock.advance(10)
            results.append(await cache.set("Genesis", chapter, "WEB", make_chapter(text=big)))

        # Every write eventually lands because the cleanup frees space.
        assert all(results)
        assert len(cache) < 7
        assert cache.contains("Genesis", 7, "WEB")
        assert not cache.contains("Genesis", 1, "WEB")

    async def test_quota_retry_failure_reports_false(self, clock: FakeClock) -> None:
        storage = MemoryBlobStorage(max_bytes=10)
        cache = ChapterCache(storage, clock=clock)
        assert await cache.set("John", 3, "WEB", make_chapter()) is False

    async def test_other_storage_errors_keep_memory_copy(self, clock: FakeClock) -> None:
        cache = ChapterCache(FailingStorage(), clock=clock)
        assert await cache.set("John", 3, "WEB", make_chapter()) is False
        # Served from memory for the rest of the session
        assert await cache.get("John", 3, "WEB") is not None


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoad:
    async def test_restores_persisted_entries(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        first = ChapterCache(storage, clock=clock)
        await first.load()
        await first.set("John", 3, "WEB", make_chapter())

        second = ChapterCache(storage, clock=clock)
        await second.load()
        assert await second.get("John", 3, "WEB") == make_chapter()

    async def test_version_mismatch_wipes_store(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        first = ChapterCache(storage, clock=clock)
        await first.load()
        await first.set("John", 3, "WEB", make_chapter())
        await storage.write_blob(CACHE_VERSION_KEY, "0.9")

        second = ChapterCache(storage, clock=clock)
        await second.load()

        assert len(second) == 0
        assert await storage.read_blob(CACHE_KEY) is None
        assert await storage.read_blob(CACHE_VERSION_KEY) == CACHE_VERSION

    async def test_missing_version_wipes_store(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        await storage.write_blob(CACHE_KEY, "{}")
        cache = ChapterCache(storage, clock=clock)
        await cache.load()
        assert await storage.read_blob(CACHE_VERSION_KEY) == CACHE_VERSION

    async def test_corrupt_blob_is_cleared(
        self, storage: MemoryBlobStorage, clock: FakeClock
    ) -> None:
        await storage.write_blob(CACHE_VERSION_KEY, CACHE_VERSION)
        await storage.write_blob(CACHE_KEY, "{not json")
        cache = ChapterCache(storage, clock=clock)
        await cache.load()
        assert len(cache) == 0
        assert await storage.read_blob(CACHE_KEY) is None


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


class TestStats:
    async def test_empty_hit_rate(self, chapter_cache: ChapterCache) -> None:
        stats = chapter_cache.stats()
        assert stats.hit_rate == "0%"
        assert stats.max_size == 500
        assert stats.max_age_days == 30

    async def test_counts(self, chapter_cache: ChapterCache) -> None:
        await chapter_cache.set("John", 3, "WEB", make_chapter())
        await chapter_cache.get("John", 3, "WEB")
        await chapter_cache.get("John", 3, "WEB")
        await chapter_cache.get("John", 4, "WEB")

        stats = chapter_cache.stats()
        assert (stats.hits, stats.misses, stats.saves, stats.entries) == (2, 1, 1, 1)
        assert stats.hit_rate == "66.7%"

    async def test_contains_does_not_touch_stats(self, chapter_cache: ChapterCache) -> None:
        chapter_cache.contains("John", 3, "WEB")
        assert chapter_cache.stats().misses == 0

    async def test_cached_chapters(self, chapter_cache: ChapterCache, clock: FakeClock) -> None:
        await chapter_cache.set("1 John", 4, "KJV", make_chapter("1 John 4"))
        clock.advance(2 * DAY_MS)

        [info] = chapter_cache.cached_chapters()
        assert (info.book, info.chapter, info.translation) == ("1 John", 4, "KJV")
        assert info.age_days == 2

    async def test_clear(self, chapter_cache: ChapterCache, storage: MemoryBlobStorage) -> None:
        await chapter_cache.set("John", 3, "WEB", make_chapter())
        await chapter_cache.clear()
        assert len(chapter_cache) == 0
        assert await storage.read_blob(CACHE_KEY) is None


class TestPreload:
    async def test_skips_cached_and_continues_past_failures(
        self, chapter_cache: ChapterCache
    ) -> None:
        await chapter_cache.set("John", 1, "WEB", make_chapter("John 1"))
        calls: list[tuple[str, int, str]] = []

        async def loader(book: str, chapter: int, translation: str) -> Chapter:
            calls.append((book, chapter, translation))
            if chapter == 2:
                raise ProviderError("boom", book=book, chapter=chapter, translation=translation)
            return make_chapter(f"{book} {chapter}")

        typed_loader: ChapterLoader = loader
        loaded = await chapter_cache.preload(
            [("John", 1, "WEB"), ("John", 2, "WEB"), ("John", 3, "WEB")],
            typed_loader,
            delay_seconds=0,
        )

        assert loaded == 1
        assert calls == [("John", 2, "WEB"), ("John", 3, "WEB")]
        assert chapter_cache.contains("John", 3, "WEB")
