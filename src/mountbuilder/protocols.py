"""Protocol interfaces for swappable components.

Services and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory implementations
- Other backends (e.g. a browser-side store, another REST API) to be swapped
  in without changing cache, search or sync code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mountbuilder.models.bible import Chapter
    from mountbuilder.models.sermon import RemoteId, RemoteSermon, SermonRecord
    from mountbuilder.models.sync import RemotePage


class BlobStorage(Protocol):
    """Durable local key/blob storage.

    ``write_blob`` raises ``StorageQuotaError`` when the quota is exhausted
    and ``StorageError`` for every other failure.
    """

    async def read_blob(self, key: str) -> str | None: ...

    async def write_blob(self, key: str, value: str) -> None: ...

    async def remove_blob(self, key: str) -> None: ...

    async def close(self) -> None: ...


class RemoteSermonStore(Protocol):
    """Interface for the remote sermon object store used by sync."""

    async def list_page(self, page: int, page_size: int) -> RemotePage: ...

    async def create(self, record: SermonRecord) -> RemoteSermon: ...

    async def update(self, remote_id: RemoteId, record: SermonRecord) -> RemoteSermon: ...

    async def bulk_import(self, records: Sequence[SermonRecord]) -> list[RemoteSermon]: ...

    async def delete(self, remote_id: RemoteId) -> None: ...


class ChapterLoader(Protocol):
    """Anything that can produce a chapter, e.g. ``BibleService.fetch_chapter``."""

    async def __call__(self, book: str, chapter: int, translation: str) -> Chapter: ...
