from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, model_validator

from mountbuilder.models.bible import Chapter


class CacheEntry(BaseModel):
    """One chapter held by the local ChapterCache. Times are epoch milliseconds."""

    value: Chapter
    timestamp: int  # Creation time; drives TTL
    last_accessed: int  # Most recent read; drives LRU

    @model_validator(mode="after")
    def _accessed_not_before_created(self) -> CacheEntry:
        if self.last_accessed < self.timestamp:
            self.last_accessed = self.timestamp
        return self


class CacheStats(BaseModel):
    entries: int
    hits: int
    misses: int
    saves: int
    hit_rate: str  # "66.7%"; "0%" before the first lookup
    max_size: int
    max_age_days: float


class CachedChapterInfo(BaseModel):
    book: str
    chapter: int
    translation: str
    age_days: int
    last_accessed: datetime


class ServerCacheStats(BaseModel):
    total_entries: int = 0
    total_accesses: int = 0
    avg_accesses: int = 0
    most_recent_access: datetime | None = None


class PopularChapter(BaseModel):
    book: str
    chapter: int
    translation: str
    access_count: int
    last_accessed: datetime
