"""Local sermon collection.

Held in memory, keyed by local id, and persisted as one JSON blob. Public
mutations persist immediately. Deleting a sermon that lives remotely leaves a
tombstone with its remote id, persisted next to the collection, until sync
has removed the remote copy. ``put`` changes memory only and is meant for
SyncCoordinator, which owns the collection for the length of a pass and saves
once at the end.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import TypeAdapter, ValidationError

from mountbuilder.models.sermon import RemoteId, SermonRecord
from mountbuilder.storage import StorageError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from mountbuilder.protocols import BlobStorage

log = structlog.get_logger()

LIBRARY_KEY = "sermons"
TOMBSTONES_KEY = "sermon_tombstones"

_RECORDS_ADAPTER: TypeAdapter[list[SermonRecord]] = TypeAdapter(list[SermonRecord])
_TOMBSTONES_ADAPTER: TypeAdapter[list[RemoteId]] = TypeAdapter(list[RemoteId])


def utcnow() -> datetime:
    return datetime.now(UTC)


class SermonLibrary:
    def __init__(
        self,
        storage: BlobStorage,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._records: dict[str, SermonRecord] = {}
        self._tombstones: set[RemoteId] = set()

    def __iter__(self) -> Iterator[SermonRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)

    @property
    def tombstones(self) -> frozenset[RemoteId]:
        """Remote ids of deleted sermons whose remote copy still has to go."""
        return frozenset(self._tombstones)

    async def load(self) -> None:
        """Restore the persisted collection. A corrupt blob leaves it empty."""
        try:
            raw = await self._storage.read_blob(LIBRARY_KEY)
            raw_tombstones = await self._storage.read_blob(TOMBSTONES_KEY)
        except StorageError:
            log.warning("library_load_error", exc_info=True)
            return
        if raw_tombstones:
            try:
                self._tombstones = set(_TOMBSTONES_ADAPTER.validate_json(raw_tombstones))
            except ValidationError:
                log.warning("library_tombstones_corrupt", exc_info=True)
        if not raw:
            return
        try:
            records = _RECORDS_ADAPTER.validate_json(raw)
        except ValidationError:
            log.warning("library_corrupt", exc_info=True)
            return
        self._records = {record.id: record for record in records}
        log.info("library_loaded", sermons=len(self._records), tombstones=len(self._tombstones))

    async def save(self) -> None:
        """Persist the whole collection. Raises StorageError on failure."""
        payload = _RECORDS_ADAPTER.dump_json(list(self._records.values())).decode()
        await self._storage.write_blob(LIBRARY_KEY, payload)
        tombstones = _TOMBSTONES_ADAPTER.dump_json(sorted(self._tombstones, key=str)).decode()
        await self._storage.write_blob(TOMBSTONES_KEY, tombstones)

    def get(self, record_id: str) -> SermonRecord | None:
        return self._records.get(record_id)

    def by_remote_id(self, remote_id: RemoteId) -> SermonRecord | None:
        for record in self._records.values():
            if record.remote_id == remote_id:
                return record
        return None

    def put(self, record: SermonRecord) -> None:
        """Insert or replace in memory without stamping or persisting."""
        self._records[record.id] = record

    def clear_tombstone(self, remote_id: RemoteId) -> None:
        """Forget a tombstone once the remote copy is gone. Memory only."""
        self._tombstones.discard(remote_id)

    async def add(self, record: SermonRecord) -> SermonRecord:
        self._records[record.id] = record
        await self.save()
        return record

    async def update(self, record_id: str, changes: dict[str, Any]) -> SermonRecord | None:
        """Apply content ``changes`` to a sermon. None if it does not exist.

        Stamps ``last_modified``; a sermon that already lives remotely is
        flagged ``needs_sync``.
        """
        current = self._records.get(record_id)
        if current is None:
            return None

        updates = {k: v for k, v in changes.items() if k not in ("id", "remote_id")}
        updates["last_modified"] = self._clock()
        if current.remote_id is not None:
            updates["needs_sync"] = True

        record = SermonRecord.model_validate({**current.model_dump(), **updates})
        self._records[record_id] = record
        await self.save()
        return record

    async def delete(self, record_id: str) -> SermonRecord | None:
        """Remove a sermon and return it. None if it does not exist.

        A sermon with a remote id leaves a tombstone so the next sync deletes
        the remote copy instead of downloading it again.
        """
        record = self._records.pop(record_id, None)
        if record is None:
            return None
        if record.remote_id is not None:
            self._tombstones.add(record.remote_id)
        await self.save()
        return record
