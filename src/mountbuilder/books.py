"""Canonical Bible book table in display order, with chapter counts."""

from __future__ import annotations

from typing import NamedTuple


class BibleBook(NamedTuple):
    name: str
    chapters: int


BIBLE_BOOKS: tuple[BibleBook, ...] = (
    BibleBook("Genesis", 50),
    BibleBook("Exodus", 40),
    BibleBook("Leviticus", 27),
    BibleBook("Numbers", 36),
    BibleBook("Deuteronomy", 34),
    BibleBook("Joshua", 24),
    BibleBook("Judges", 21),
    BibleBook("Ruth", 4),
    BibleBook("1 Samuel", 31),
    BibleBook("2 Samuel", 24),
    BibleBook("1 Kings", 22),
    BibleBook("2 Kings", 25),
    BibleBook("1 Chronicles", 29),
    BibleBook("2 Chronicles", 36),
    BibleBook("Ezra", 10),
    BibleBook("Nehemiah", 13),
    BibleBook("Esther", 10),
    BibleBook("Job", 42),
    BibleBook("Psalms", 150),
    BibleBook("Proverbs", 31),
    BibleBook("Ecclesiastes", 12),
    BibleBook("Song of Solomon", 8),
    BibleBook("Isaiah", 66),
    BibleBook("Jeremiah", 52),
    BibleBook("Lamentations", 5),
    BibleBook("Ezekiel", 48),
    BibleBook("Daniel", 12),
    BibleBook("Hosea", 14),
    BibleBook("Joel", 3),
    BibleBook("Amos", 9),
    BibleBook("Obadiah", 1),
    BibleBook("Jonah", 4),
    BibleBook("Micah", 7),
    BibleBook("Nahum", 3),
    BibleBook("Habakkuk", 3),
    BibleBook("Zephaniah", 3),
    BibleBook("Haggai", 2),
    BibleBook("Zechariah", 14),
    BibleBook("Malachi", 4),
    BibleBook("Matthew", 28),
    BibleBook("Mark", 16),
    BibleBook("Luke", 24),
    BibleBook("John", 21),
    BibleBook("Acts", 28),
    BibleBook("Romans", 16),
    BibleBook("1 Corinthians", 16),
    BibleBook("2 Corinthians", 13),
    BibleBook("Galatians", 6),
    BibleBook("Ephesians", 6),
    BibleBook("Philippians", 4),
    BibleBook("Colossians", 4),
    BibleBook("1 Thessalonians", 5),
    BibleBook("2 Thessalonians", 3),
    BibleBook("1 Timothy", 6),
    BibleBook("2 Timothy", 4),
    BibleBook("Titus", 3),
    BibleBook("Philemon", 1),
    BibleBook("Hebrews", 13),
    BibleBook("James", 5),
    BibleBook("1 Peter", 5),
    BibleBook("2 Peter", 3),
    BibleBook("1 John", 5),
    BibleBook("2 John", 1),
    BibleBook("3 John", 1),
    BibleBook("Jude", 1),
    BibleBook("Revelation", 22),
)

_ALIASES: dict[str, str] = {
    "psalm": "Psalms",
    "songofsongs": "Song of Solomon",
    "revelations": "Revelation",
}


def _squash(name: str) -> str:
    """``'1 Corinthians'`` → ``'1corinthians'``."""
    return "".join(name.split()).lower()


_BY_SQUASHED: dict[str, str] = {_squash(book.name): book.name for book in BIBLE_BOOKS}
_BY_SQUASHED.update(_ALIASES)
_POSITION: dict[str, int] = {book.name: idx for idx, book in enumerate(BIBLE_BOOKS)}


def canonical_book(name: str) -> str | None:
    """Return the canonical book name, or None if the book is unknown."""
    return _BY_SQUASHED.get(_squash(name))


def chapter_count(book: str) -> int | None:
    canonical = canonical_book(book)
    if canonical is None:
        return None
    return BIBLE_BOOKS[_POSITION[canonical]].chapters


def adjacent_chapter(book: str, chapter: int, step: int) -> tuple[str, int] | None:
    """Return the chapter ``step`` places away, crossing book boundaries.

    Returns None when the move would run off either end of the Bible or the
    book is unknown.
    """
    canonical = canonical_book(book)
    if canonical is None:
        return None

    position = _POSITION[canonical]
    target = chapter + step

    while target < 1:
        position -= 1
        if position < 0:
            return None
        target += BIBLE_BOOKS[position].chapters

    while target > BIBLE_BOOKS[position].chapters:
        target -= BIBLE_BOOKS[position].chapters
        position += 1
        if position >= len(BIBLE_BOOKS):
            return None

    return BIBLE_BOOKS[position].name, target
