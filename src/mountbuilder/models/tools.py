from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from mountbuilder.models.cache import CacheStats, PopularChapter, ServerCacheStats
from mountbuilder.models.search import MatchType, SearchField
from mountbuilder.models.sermon import RemoteId
from mountbuilder.models.sync import MigrationResult, SyncResult, SyncStatus

_TRANSLATION_PATTERN = r"^[A-Za-z0-9]{2,10}$"


class LookupPassageInput(BaseModel):
    reference: str = Field(min_length=1, max_length=200)
    translation: str = Field(default="WEB", pattern=_TRANSLATION_PATTERN)

    @field_validator("reference")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("translation")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()


class GetChapterInput(BaseModel):
    book: str = Field(min_length=1, max_length=50)
    chapter: int = Field(ge=1, le=150)
    translation: str = Field(default="WEB", pattern=_TRANSLATION_PATTERN)

    @field_validator("book")
    @classmethod
    def _strip(cls, v: str) -> str:
        return " ".join(v.split())

    @field_validator("translation")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()


class ChapterOutput(BaseModel):
    reference: str
    text: str
    translation_label: str
    requested_translation: str
    effective_translation: str
    substituted: bool
    source: Literal["local_cache", "server_cache", "provider"]
    # Set for lookup_passage only
    passage: str | None = None
    verse_start: int | None = None
    verse_end: int | None = None


class SearchSermonsInput(BaseModel):
    query: str = Field(max_length=500)
    min_relevance: int = Field(default=0, ge=0)
    fuzzy: bool = True
    limit: int = Field(default=20, ge=1, le=100)


class SermonHit(BaseModel):
    id: str
    remote_id: RemoteId | None
    title: str
    speaker: str
    series: str
    verse_reference: str
    date: dt.date | None
    relevance: int
    matched_fields: list[SearchField]
    match_types: list[MatchType]


class SearchSermonsOutput(BaseModel):
    query: str
    total: int
    results: list[SermonHit]


class SyncSermonsOutput(BaseModel):
    result: SyncResult
    status: SyncStatus


class CacheStatsOutput(BaseModel):
    local: CacheStats
    server: ServerCacheStats | None
    popular: list[PopularChapter]


class SermonInput(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    speaker: str = Field(default="", max_length=100)
    series: str = Field(default="", max_length=100)
    verse_reference: str = Field(default="", max_length=200)
    notes: str = Field(default="", max_length=20_000)
    date: dt.date | None = None
    tags: list[str] = Field(default_factory=list, max_length=20)

    @field_validator("title", "speaker", "series", "verse_reference")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, v: list[str]) -> list[str]:
        return [tag.strip() for tag in v if tag.strip()]


class SermonUpdateInput(BaseModel):
    """Only the fields that are set are changed."""

    sermon_id: str = Field(min_length=1, max_length=64)
    title: str | None = Field(default=None, min_length=1, max_length=200)
    speaker: str | None = Field(default=None, max_length=100)
    series: str | None = Field(default=None, max_length=100)
    verse_reference: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=20_000)
    date: dt.date | None = None
    tags: list[str] | None = Field(default=None, max_length=20)

    def changes(self) -> dict[str, object]:
        changes = self.model_dump(exclude={"sermon_id"}, exclude_none=True)
        if "tags" in changes:
            changes["tags"] = {tag.strip() for tag in changes["tags"] if tag.strip()}
        return changes


class SermonOutput(BaseModel):
    id: str
    remote_id: RemoteId | None
    title: str
    speaker: str
    series: str
    verse_reference: str
    notes: str
    date: dt.date | None
    tags: list[str]
    last_modified: dt.datetime
    last_synced: dt.datetime | None
    needs_sync: bool


class DeleteSermonOutput(BaseModel):
    deleted: SermonOutput
    # True while the remote copy waits for the next sync
    remote_pending: bool


class FilterSermonsInput(BaseModel):
    query: str = Field(default="", max_length=500)
    speaker: str = Field(default="", max_length=100)
    series: str = Field(default="", max_length=100)
    date_from: dt.date | None = None
    date_to: dt.date | None = None
    has_verse: bool | None = None
    tags: list[str] = Field(default_factory=list, max_length=20)
    sort_by: Literal["relevance", "date-desc", "date-asc", "title"] = "relevance"
    limit: int = Field(default=20, ge=1, le=100)


class FilterSermonsOutput(BaseModel):
    total: int
    results: list[SermonOutput]


class SuggestionsInput(BaseModel):
    query: str = Field(default="", max_length=100)
    limit: int = Field(default=5, ge=1, le=20)


class SuggestionsOutput(BaseModel):
    query: str
    suggestions: list[str]


class MigrateSermonsOutput(BaseModel):
    result: MigrationResult
    status: SyncStatus


class PreloadChaptersInput(BaseModel):
    references: list[str] = Field(min_length=1, max_length=50)
    translation: str = Field(default="WEB", pattern=_TRANSLATION_PATTERN)

    @field_validator("translation")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()


class PreloadChaptersOutput(BaseModel):
    requested: int
    # Chapters fetched now; cached or failed ones are not counted
    loaded: int


class ClearServerCacheOutput(BaseModel):
    days_old: int
    deleted: int
