"""Local/remote sermon reconciliation.

A full sync runs five steps against one RemoteSermonStore:

1. List every remote page. A listing failure aborts the sync before any local
   state is touched.
2. Delete pass: remote copies of sermons deleted locally (the library's
   tombstones) are deleted remotely. A tombstone is cleared once the remote
   copy is gone, including when the store answers 404; any other failure is
   counted and the tombstone kept for the next call.
3. Upload pass: records with no remote id, or flagged ``needs_sync``, are
   created or updated remotely. A failed upload is counted and the record is
   flagged ``needs_sync`` for the next call; it is never dropped.
4. Download pass: remote records unknown locally become new synced records.
   Tombstoned remote ids are never downloaded.
5. Conflict pass: a remote record strictly newer than its local counterpart
   is a conflict. Conflicts are always counted, but only applied under the
   ``cloud-first`` policy.

Only one sync, migration or remote delete runs at a time. The guard is taken
before the first await, so a second call fails without touching either side,
and a coroutine that never starts never holds it.

The time of the last completed sync or migration is persisted through
BlobStorage next to the library.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from mountbuilder.errors import ErrorCode, MountBuilderError, RemoteStoreError, SyncInProgressError
from mountbuilder.library import utcnow
from mountbuilder.models.sermon import SERMON_CONTENT_FIELDS, RemoteSermon, SermonRecord
from mountbuilder.models.sync import MigrationResult, SyncResult, SyncStatus
from mountbuilder.storage import StorageError

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from mountbuilder.config import ConflictResolution
    from mountbuilder.library import SermonLibrary
    from mountbuilder.models.sermon import RemoteId
    from mountbuilder.protocols import BlobStorage, RemoteSermonStore

log = structlog.get_logger()

MAX_BULK_IMPORT = 100
SYNC_STATE_KEY = "sync_state"


def record_from_remote(remote: RemoteSermon, synced_at: datetime) -> SermonRecord:
    """Materialise a remote sermon as a new, synced local record."""
    return SermonRecord(
        **_remote_content(remote),
        remote_id=remote.id,
        saved_at=remote.created_at or synced_at,
        last_modified=remote.modified_at or synced_at,
        last_synced=synced_at,
        needs_sync=False,
    )


def _remote_content(remote: RemoteSermon) -> dict[str, Any]:
    content = remote.model_dump(include=set(SERMON_CONTENT_FIELDS))
    content["tags"] = set(remote.tags)
    return content


class SyncCoordinator:
    def __init__(
        self,
        remote: RemoteSermonStore,
        *,
        storage: BlobStorage | None = None,
        conflict_resolution: ConflictResolution = "local-first",
        page_size: int = 100,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._remote = remote
        self._storage = storage
        self.conflict_resolution = conflict_resolution
        self.page_size = page_size
        self._clock = clock
        self._in_progress = False
        self.last_sync: datetime | None = None

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def load_state(self) -> None:
        """Restore ``last_sync``. Missing or unreadable state leaves it unset."""
        if self._storage is None:
            return
        try:
            raw = await self._storage.read_blob(SYNC_STATE_KEY)
        except StorageError:
            log.warning("sync_state_load_error", exc_info=True)
            return
        if not raw:
            return
        try:
            last_sync = json.loads(raw).get("last_sync")
            self.last_sync = datetime.fromisoformat(last_sync) if last_sync else None
        except (AttributeError, TypeError, ValueError):
            log.warning("sync_state_corrupt", exc_info=True)

    async def full_sync(self, library: SermonLibrary) -> SyncResult:
        """Run a full sync.

        Raises SyncInProgressError if a sync, migration or remote delete is
        already running, and MountBuilderError(SYNC_FAILED) if the remote
        listing fails.
        """
        self._acquire()
        try:
            return await self._full_sync(library)
        finally:
            self._in_progress = False

    async def migrate_to_cloud(self, library: SermonLibrary) -> MigrationResult:
        """Bulk-import every never-synced record, in batches of at most 100."""
        self._acquire()
        try:
            return await self._migrate(library)
        finally:
            self._in_progress = False

    async def delete_sermon(self, library: SermonLibrary, record_id: str) -> SermonRecord | None:
        """Delete a sermon locally, then its remote copy if it has one.

        A failed remote delete is logged and left to the next sync through the
        library's tombstone. Returns the deleted record, or None if unknown.
        """
        self._acquire()
        try:
            record = await library.delete(record_id)
            if record is None or record.remote_id is None:
                return record
            if await self._delete_remote(record.remote_id):
                library.clear_tombstone(record.remote_id)
                await self._save(library, stamp=False)
            return record
        finally:
            self._in_progress = False

    def status(self, library: SermonLibrary) -> SyncStatus:
        records = list(library)
        return SyncStatus(
            last_sync=self.last_sync,
            total_sermons=len(records),
            synced=sum(1 for r in records if r.remote_id is not None and not r.needs_sync),
            needs_sync=sum(1 for r in records if r.remote_id is None or r.needs_sync),
            in_progress=self._in_progress,
        )

    def _acquire(self) -> None:
        if self._in_progress:
            log.warning("sync_rejected", reason="in_progress")
            raise SyncInProgressError()
        self._in_progress = True

    async def _list_remote(self) -> list[RemoteSermon]:
        items: list[RemoteSermon] = []
        page = 1
        while True:
            try:
                result = await self._remote.list_page(page, self.page_size)
            except RemoteStoreError as exc:
                log.warning("sync_list_failed", page=page, error=exc.message)
                raise MountBuilderError(
                    code=ErrorCode.SYNC_FAILED,
                    message=f"Could not list remote sermons: {exc.message}",
                    suggestion="Local sermons were not changed. Try again when online.",
                    recoverable=True,
                ) from exc
            items.extend(result.items)
            if page >= result.total_pages:
                return items
            page += 1

    async def _delete_remote(self, remote_id: RemoteId) -> bool:
        """True once the remote copy is gone."""
        try:
            await self._remote.delete(remote_id)
        except RemoteStoreError as exc:
            if exc.status_code == 404:
                return True
            log.warning("sync_remote_delete_failed", remote_id=remote_id, error=exc.message)
            return False
        return True

    async def _full_sync(self, library: SermonLibrary) -> SyncResult:
        log.info("sync_started", conflict_resolution=self.conflict_resolution)
        remote_items = await self._list_remote()
        result = SyncResult()

        tombstoned = set(library.tombstones)
        await self._delete_pass(library, tombstoned, result)
        uploaded_ids = await self._upload_pass(library, result)
        self._download_pass(library, remote_items, uploaded_ids | tombstoned, result)

        await self._save(library)
        log.info(
            "sync_complete",
            uploaded=result.uploaded,
            downloaded=result.downloaded,
            conflicts=result.conflicts,
            deleted=result.deleted,
            errors=result.errors,
        )
        return result

    async def _delete_pass(
        self, library: SermonLibrary, tombstoned: set[RemoteId], result: SyncResult
    ) -> None:
        for remote_id in tombstoned:
            if await self._delete_remote(remote_id):
                library.clear_tombstone(remote_id)
                result.deleted += 1
            else:
                result.errors += 1

    async def _upload_pass(self, library: SermonLibrary, result: SyncResult) -> set[Any]:
        uploaded_ids: set[Any] = set()
        for record in library:
            if record.remote_id is not None and not record.needs_sync:
                continue
            try:
                if record.remote_id is None:
                    saved = await self._remote.create(record)
                else:
                    saved = await self._remote.update(record.remote_id, record)
            except RemoteStoreError:
                log.warning("sync_upload_failed", sermon_id=record.id, exc_info=True)
                library.put(record.model_copy(update={"needs_sync": True}))
                result.errors += 1
                continue

            # The stored copy is now the remote version, so a later listing of
            # it must not look newer than the local record.
            last_modified = record.last_modified
            if saved.modified_at is not None and saved.modified_at > last_modified:
                last_modified = saved.modified_at
            library.put(
                record.model_copy(
                    update={
                        "remote_id": saved.id,
                        "last_synced": self._clock(),
                        "last_modified": last_modified,
                        "needs_sync": False,
                    }
                )
            )
            uploaded_ids.add(saved.id)
            result.uploaded += 1
        return uploaded_ids

    def _download_pass(
        self,
        library: SermonLibrary,
        remote_items: list[RemoteSermon],
        skip_ids: set[Any],
        result: SyncResult,
    ) -> None:
        local_by_remote = {r.remote_id: r for r in library if r.remote_id is not None}

        for remote in remote_items:
            # Uploaded in this pass, or deleted locally.
            if remote.id in skip_ids:
                continue

            local = local_by_remote.get(remote.id)
            if local is None:
                library.put(record_from_remote(remote, self._clock()))
                result.downloaded += 1
                continue

            modified = remote.modified_at
            if modified is None or modified <= local.last_modified:
                continue

            result.conflicts += 1
            if self.conflict_resolution == "cloud-first":
                library.put(
                    local.model_copy(
                        update={
                            **_remote_content(remote),
                            "last_modified": modified,
                            "last_synced": self._clock(),
                            "needs_sync": False,
                        }
                    )
                )
                log.info("sync_conflict_applied", sermon_id=local.id, remote_id=remote.id)
            else:
                log.info("sync_conflict_kept_local", sermon_id=local.id, remote_id=remote.id)

    async def _migrate(self, library: SermonLibrary) -> MigrationResult:
        pending = [r for r in library if r.remote_id is None]
        if not pending:
            return MigrationResult(migrated=0, message="No local sermons to migrate")

        migrated = 0
        failed = 0
        for start in range(0, len(pending), MAX_BULK_IMPORT):
            batch = pending[start : start + MAX_BULK_IMPORT]
            try:
                created = await self._remote.bulk_import(batch)
            except RemoteStoreError:
                log.warning("sync_migration_batch_failed", batch_size=len(batch), exc_info=True)
                failed += len(batch)
                continue

            now = self._clock()
            for record, remote in zip(batch, created, strict=False):
                library.put(
                    record.model_copy(
                        update={"remote_id": remote.id, "last_synced": now, "needs_sync": False}
                    )
                )
                migrated += 1

        await self._save(library)
        log.info("sync_migration_complete", migrated=migrated, failed=failed)
        message = f"Migrated {migrated} sermons to cloud storage"
        if failed:
            message += f", {failed} failed"
        return MigrationResult(migrated=migrated, message=message)

    async def _save(self, library: SermonLibrary, *, stamp: bool = True) -> None:
        if stamp:
            self.last_sync = self._clock()
        try:
            await library.save()
            if self._storage is not None and stamp:
                state = {"last_sync": self.last_sync.isoformat() if self.last_sync else None}
                await self._storage.write_blob(SYNC_STATE_KEY, json.dumps(state))
        except StorageError:
            # The pass already happened remotely; memory holds the merged state.
            log.warning("sync_persist_failed", exc_info=True)
