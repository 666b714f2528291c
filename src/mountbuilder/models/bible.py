from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class VerseReference(BaseModel):
    """A parsed scripture reference."""

    model_config = ConfigDict(frozen=True)

    book: str
    chapter: int
    verse_start: int | None = None
    verse_end: int | None = None

    @property
    def normalized(self) -> str:
        if self.verse_start is None:
            return f"{self.book} {self.chapter}"
        if self.verse_end is not None and self.verse_end != self.verse_start:
            return f"{self.book} {self.chapter}:{self.verse_start}-{self.verse_end}"
        return f"{self.book} {self.chapter}:{self.verse_start}"


class Chapter(BaseModel):
    """Normalized chapter record, identical in shape for every provider."""

    reference: str
    text: str
    translation: str  # Human label reported by the provider, e.g. "World English Bible"


class ChapterLookup(BaseModel):
    """Result of a BibleService lookup."""

    chapter: Chapter
    requested_translation: str
    effective_translation: str
    substituted: bool = False  # True when the default translation replaced the request
    source: Literal["local_cache", "server_cache", "provider"]
    passage: VerseReference | None = None  # Set when the lookup started from a reference
