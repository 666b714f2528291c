"""Shared test fixtures for the mountbuilder test suite."""

from __future__ import annotations

import asyncio
import datetime as dt
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite
import httpx
import pytest

from mountbuilder.chapter_cache import ChapterCache
from mountbuilder.errors import RemoteStoreError
from mountbuilder.library import SermonLibrary
from mountbuilder.models.bible import Chapter
from mountbuilder.models.sermon import RemoteSermon, SermonRecord
from mountbuilder.models.sync import RemotePage
from mountbuilder.providers import BibleApiProvider, BollsProvider, ProviderSelector
from mountbuilder.server_cache import ServerCache
from mountbuilder.storage import MemoryBlobStorage

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence

    from mountbuilder.models.sermon import RemoteId

PRIMARY_URL = "https://bible-api.com/"
SECONDARY_URL = "https://bolls.life/"
REMOTE_EPOCH = datetime(2026, 1, 1, tzinfo=UTC)


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeRemoteStore:
    """In-memory RemoteSermonStore with switchable failures."""

    def __init__(self) -> None:
        self.items: dict[RemoteId, RemoteSermon] = {}
        self.page_size_seen: list[int] = []
        self.fail_listing = False
        self.fail_titles: set[str] = set()
        self.fail_bulk = False
        self.fail_delete = False
        # Set to hold list_page until the event fires.
        self.list_gate: asyncio.Event | None = None
        self.created: list[SermonRecord] = []
        self.updated: list[tuple[RemoteId, SermonRecord]] = []
        self.bulk_batches: list[int] = []
        self.deleted: list[RemoteId] = []
        self._next_id = 1
        self.clock = REMOTE_EPOCH

    def _tick(self) -> datetime:
        self.clock += timedelta(seconds=1)
        return self.clock

    def seed(self, **fields: object) -> RemoteSermon:
        """Put a sermon into the remote collection directly."""
        remote_id = self._next_id
        self._next_id += 1
        fields.setdefault("created_at", self._tick())
        fields.setdefault("updated_at", fields["created_at"])
        item = RemoteSermon(id=remote_id, **fields)
        self.items[remote_id] = item
        return item

    def _store(self, remote_id: RemoteId, record: SermonRecord) -> RemoteSermon:
        now = self._tick()
        previous = self.items.get(remote_id)
        item = RemoteSermon(
            id=remote_id,
            title=record.title,
            speaker=record.speaker,
            series=record.series,
            verse_reference=record.verse_reference,
            notes=record.notes,
            date=record.date,
            tags=sorted(record.tags),
            created_at=previous.created_at if previous else now,
            updated_at=now,
        )
        self.items[remote_id] = item
        return item

    async def list_page(self, page: int, page_size: int) -> RemotePage:
        self.page_size_seen.append(page_size)
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.fail_listing:
            raise RemoteStoreError("GET /sermons returned HTTP 503", status_code=503)
        ordered = list(self.items.values())
        start = (page - 1) * page_size
        total_pages = (len(ordered) + page_size - 1) // page_size
        return RemotePage(items=ordered[start : start + page_size], total_pages=total_pages)

    async def create(self, record: SermonRecord) -> RemoteSermon:
        if record.title in self.fail_titles:
            raise RemoteStoreError("POST /sermons returned HTTP 500", status_code=500)
        self.created.append(record)
        remote_id = self._next_id
        self._next_id += 1
        return self._store(remote_id, record)

    async def update(self, remote_id: RemoteId, record: SermonRecord) -> RemoteSermon:
        if record.title in self.fail_titles:
            raise RemoteStoreError(f"PUT /sermons/{remote_id} returned HTTP 500", status_code=500)
        self.updated.append((remote_id, record))
        return self._store(remote_id, record)

    async def bulk_import(self, records: Sequence[SermonRecord]) -> list[RemoteSermon]:
        if self.fail_bulk:
            raise RemoteStoreError("POST /sermons/bulk returned HTTP 500", status_code=500)
        self.bulk_batches.append(len(records))
        created = []
        for record in records:
            remote_id = self._next_id
            self._next_id += 1
            created.append(self._store(remote_id, record))
        return created

    async def delete(self, remote_id: RemoteId) -> None:
        if self.fail_delete:
            raise RemoteStoreError(f"DELETE /sermons/{remote_id} failed", status_code=500)
        if self.items.pop(remote_id, None) is None:
            raise RemoteStoreError(
                f"DELETE /sermons/{remote_id} returned HTTP 404", status_code=404
            )
        self.deleted.append(remote_id)


def make_chapter(reference: str = "John 3", text: str = "1. Now there was a man") -> Chapter:
    return Chapter(reference=reference, text=text, translation="World English Bible")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def storage() -> MemoryBlobStorage:
    return MemoryBlobStorage()


@pytest.fixture()
def chapter_cache(storage: MemoryBlobStorage, clock: FakeClock) -> ChapterCache:
    return ChapterCache(storage, clock=clock)


@pytest.fixture()
async def server_cache() -> AsyncGenerator[ServerCache, None]:
    async with aiosqlite.connect(":memory:") as db:
        cache = ServerCache(db)
        await cache.init_db()
        yield cache


@pytest.fixture()
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture()
def primary(http_client: httpx.AsyncClient) -> BibleApiProvider:
    return BibleApiProvider(http_client, PRIMARY_URL)


@pytest.fixture()
def secondary(http_client: httpx.AsyncClient) -> BollsProvider:
    return BollsProvider(http_client, SECONDARY_URL)


@pytest.fixture()
def selector(primary: BibleApiProvider, secondary: BollsProvider) -> ProviderSelector:
    return ProviderSelector(primary, secondary)


@pytest.fixture()
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture()
def sermons() -> list[SermonRecord]:
    """A small library covering every searchable field."""
    return [
        SermonRecord(
            title="Faith that moves mountains",
            speaker="Anna Okafor",
            series="Living Faith",
            verse_reference="Matthew 17:20",
            notes="Mustard seed faith and prayer",
            date=dt.date(2025, 3, 2),
            tags={"faith", "prayer"},
        ),
        SermonRecord(
            title="The Good Shepherd",
            speaker="Daniel Reyes",
            series="I Am",
            verse_reference="John 10:11",
            notes="Shepherd imagery in the gospels",
            date=dt.date(2025, 4, 13),
            tags={"jesus"},
        ),
        SermonRecord(
            title="Love is patient",
            speaker="Anna Okafor",
            series="Letters",
            verse_reference="1 Corinthians 13:4-7",
            notes="",
            date=None,
            tags={"love"},
        ),
    ]


@pytest.fixture()
def library(storage: MemoryBlobStorage) -> SermonLibrary:
    return SermonLibrary(storage)
