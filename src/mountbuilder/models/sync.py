from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from mountbuilder.models.sermon import RemoteSermon


class RemotePage(BaseModel):
    items: list[RemoteSermon]
    total_pages: int


class SyncResult(BaseModel):
    uploaded: int = 0
    downloaded: int = 0
    conflicts: int = 0
    deleted: int = 0
    errors: int = 0


class SyncStatus(BaseModel):
    last_sync: datetime | None
    total_sermons: int
    synced: int
    needs_sync: int
    in_progress: bool


class MigrationResult(BaseModel):
    migrated: int
    message: str
