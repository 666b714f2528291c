"""Scripture reference parser.

Pure function over a human-typed reference such as ``"John 3:16"``,
``"1 Corinthians 13:4-7"`` or ``"Psalm 23"``. Malformed input yields
``None``; callers treat that as "cannot fetch", never as an exception.
"""

from __future__ import annotations

import re

from mountbuilder.books import canonical_book
from mountbuilder.models.bible import VerseReference

_REFERENCE_RE = re.compile(
    r"^(?P<book>(?:[1-3]\s?)?[A-Za-z]+(?:\s[A-Za-z]+)*)"
    r"\s+(?P<chapter>\d{1,3})"
    r"(?::(?P<start>\d{1,3})(?:\s?-\s?(?P<end>\d{1,3}))?)?$"
)


def _collapse(raw: str) -> str:
    return " ".join(raw.split())


def parse_reference(ref: str) -> VerseReference | None:
    """Parse a reference into (book, chapter, verse_start, verse_end).

    Known books come back in canonical form (``"1corinthians"`` →
    ``"1 Corinthians"``); unknown books keep the whitespace-collapsed input.
    Zero chapters or verses and reversed ranges are rejected.
    """
    if not isinstance(ref, str):
        return None

    match = _REFERENCE_RE.match(_collapse(ref))
    if match is None:
        return None

    book = match["book"]
    chapter = int(match["chapter"])
    verse_start = int(match["start"]) if match["start"] else None
    verse_end = int(match["end"]) if match["end"] else None

    if chapter < 1 or verse_start == 0:
        return None
    if verse_start is not None and verse_end is not None and verse_end < verse_start:
        return None

    return VerseReference(
        book=canonical_book(book) or book,
        chapter=chapter,
        verse_start=verse_start,
        verse_end=verse_end,
    )


def is_valid_reference(ref: str) -> bool:
    """Form validator: a reference is valid when it parses."""
    return parse_reference(ref) is not None
