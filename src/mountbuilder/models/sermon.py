from __future__ import annotations

import datetime as dt
import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

RemoteId = int | str


def _now() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime | None) -> datetime | None:
    # Timestamps without an offset are UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class SermonRecord(BaseModel):
    """A sermon in the local library, with its sync bookkeeping."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str = ""
    speaker: str = ""
    series: str = ""
    verse_reference: str = ""
    notes: str = ""
    date: dt.date | None = None
    tags: set[str] = Field(default_factory=set)

    remote_id: RemoteId | None = None
    saved_at: datetime = Field(default_factory=_now)
    last_modified: datetime = Field(default_factory=_now)
    last_synced: datetime | None = None
    needs_sync: bool = False

    @field_validator("saved_at", "last_modified", "last_synced")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class RemoteSermon(BaseModel):
    """A sermon as returned by the remote object store."""

    model_config = ConfigDict(extra="ignore")

    id: RemoteId
    title: str = ""
    speaker: str = ""
    series: str = ""
    verse_reference: str = ""
    notes: str = ""
    date: dt.date | None = None
    tags: list[str] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def modified_at(self) -> datetime | None:
        return self.updated_at or self.created_at


# Content fields shared by local and remote records.
SERMON_CONTENT_FIELDS: tuple[str, ...] = (
    "title",
    "speaker",
    "series",
    "verse_reference",
    "notes",
    "date",
    "tags",
)
