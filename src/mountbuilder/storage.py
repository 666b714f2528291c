"""Durable local key/blob storage.

Each blob is an opaque string (JSON in practice) stored under a key. Writers
must be able to tell a quota failure apart from any other failure: the chapter
cache frees space and retries only on ``StorageQuotaError``.
"""

from __future__ import annotations

import sqlite3
from contextlib import suppress

import aiosqlite

_CREATE_BLOB_TABLE = """
CREATE TABLE IF NOT EXISTS blobs (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL
)
"""


class StorageError(Exception):
    """A durable read or write failed."""


class StorageQuotaError(StorageError):
    """A durable write failed because the storage quota is exhausted."""


def _is_quota_error(exc: sqlite3.Error) -> bool:
    code = getattr(exc, "sqlite_errorcode", None)
    if code is not None:
        return code == sqlite3.SQLITE_FULL
    return "database or disk is full" in str(exc)


class SqliteBlobStorage:
    """SQLite-backed blob store implementing BlobStorage.

    ``max_bytes`` caps the database file through ``PRAGMA max_page_count``;
    writes past the cap fail with SQLITE_FULL and surface as
    ``StorageQuotaError``.
    """

    def __init__(self, db: aiosqlite.Connection, *, max_bytes: int | None = None) -> None:
        self._db = db
        self._max_bytes = max_bytes

    async def init_db(self) -> None:
        """Create the blob table and apply the quota. Called once at startup."""
        await self._db.execute(_CREATE_BLOB_TABLE)
        await self._db.commit()
        if self._max_bytes is not None:
            cursor = await self._db.execute("PRAGMA page_size")
            row = await cursor.fetchone()
            page_size = row[0] if row else 4096
            max_pages = max(1, self._max_bytes // page_size)
            await self._db.execute(f"PRAGMA max_page_count = {int(max_pages)}")

    async def read_blob(self, key: str) -> str | None:
        try:
            cursor = await self._db.execute("SELECT value FROM blobs WHERE key = ?", (key,))
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to read blob {key!r}: {exc}") from exc
        return None if row is None else row[0]

    async def write_blob(self, key: str, value: str) -> None:
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO blobs (key, value) VALUES (?, ?)",
                (key, value),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            with suppress(aiosqlite.Error):
                await self._db.rollback()
            if _is_quota_error(exc):
                raise StorageQuotaError(f"Storage quota exceeded writing {key!r}") from exc
            raise StorageError(f"Failed to write blob {key!r}: {exc}") from exc

    async def remove_blob(self, key: str) -> None:
        try:
            await self._db.execute("DELETE FROM blobs WHERE key = ?", (key,))
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to remove blob {key!r}: {exc}") from exc

    async def close(self) -> None:
        await self._db.close()


class MemoryBlobStorage:
    """Process-local blob store with an optional byte quota."""

    def __init__(self, *, max_bytes: int | None = None) -> None:
        self._blobs: dict[str, str] = {}
        self._max_bytes = max_bytes

    def _size_without(self, key: str) -> int:
        return sum(len(v.encode("utf-8")) for k, v in self._blobs.items() if k != key)

    async def read_blob(self, key: str) -> str | None:
        return self._blobs.get(key)

    async def write_blob(self, key: str, value: str) -> None:
        if self._max_bytes is not None:
            needed = self._size_without(key) + len(value.encode("utf-8"))
            if needed > self._max_bytes:
                raise StorageQuotaError(
                    f"Storage quota exceeded writing {key!r} ({needed} > {self._max_bytes} bytes)"
                )
        self._blobs[key] = value

    async def remove_blob(self, key: str) -> None:
        self._blobs.pop(key, None)

    async def close(self) -> None:
        """Nothing to release; contents stay readable."""
