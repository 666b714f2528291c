from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel

from mountbuilder.models.sermon import SermonRecord

SearchField = Literal["title", "speaker", "series", "verse_reference", "notes"]
MatchType = Literal["exact", "fuzzy"]


class SearchMatch(BaseModel):
    field: SearchField
    term: str
    match_type: MatchType


class SearchResult(BaseModel):
    item: SermonRecord
    relevance: int
    matches: list[SearchMatch] = []


class SearchOptions(BaseModel):
    fuzzy: bool = True
    min_relevance: int = 0
    fields: tuple[SearchField, ...] | None = None  # None searches every weighted field


class SearchFilters(BaseModel):
    query: str = ""
    speaker: str = ""
    series: str = ""
    date_from: date | None = None
    date_to: date | None = None
    has_verse: bool | None = None
    tags: frozenset[str] = frozenset()  # Record must carry every listed tag
    sort_by: Literal["relevance", "date-desc", "date-asc", "title"] = "relevance"
