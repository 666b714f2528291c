from __future__ import annotations

from mountbuilder.models.bible import Chapter, ChapterLookup, VerseReference
from mountbuilder.models.cache import (
    CachedChapterInfo,
    CacheEntry,
    CacheStats,
    PopularChapter,
    ServerCacheStats,
)
from mountbuilder.models.search import (
    SearchFilters,
    SearchMatch,
    SearchOptions,
    SearchResult,
)
from mountbuilder.models.sermon import RemoteSermon, SermonRecord
from mountbuilder.models.sync import MigrationResult, RemotePage, SyncResult, SyncStatus
from mountbuilder.models.tools import (
    CacheStatsOutput,
    ChapterOutput,
    ClearServerCacheOutput,
    DeleteSermonOutput,
    FilterSermonsInput,
    FilterSermonsOutput,
    GetChapterInput,
    LookupPassageInput,
    MigrateSermonsOutput,
    PreloadChaptersInput,
    PreloadChaptersOutput,
    SearchSermonsInput,
    SearchSermonsOutput,
    SermonHit,
    SermonInput,
    SermonOutput,
    SermonUpdateInput,
    SuggestionsInput,
    SuggestionsOutput,
    SyncSermonsOutput,
)

__all__ = [
    # bible
    "VerseReference",
    "Chapter",
    "ChapterLookup",
    # cache
    "CacheEntry",
    "CacheStats",
    "CachedChapterInfo",
    "ServerCacheStats",
    "PopularChapter",
    # sermons and search
    "SermonRecord",
    "RemoteSermon",
    "SearchMatch",
    "SearchResult",
    "SearchOptions",
    "SearchFilters",
    # sync
    "RemotePage",
    "SyncResult",
    "SyncStatus",
    "MigrationResult",
    # tools
    "LookupPassageInput",
    "GetChapterInput",
    "ChapterOutput",
    "SearchSermonsInput",
    "SearchSermonsOutput",
    "SermonHit",
    "SyncSermonsOutput",
    "MigrateSermonsOutput",
    "CacheStatsOutput",
    "SermonInput",
    "SermonUpdateInput",
    "SermonOutput",
    "DeleteSermonOutput",
    "FilterSermonsInput",
    "FilterSermonsOutput",
    "SuggestionsInput",
    "SuggestionsOutput",
    "PreloadChaptersInput",
    "PreloadChaptersOutput",
    "ClearServerCacheOutput",
]
