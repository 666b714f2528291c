"""Secondary provider: bolls.life (modern translations).

bolls.life addresses books by number, so this provider owns its own
book-name → id table instead of borrowing a display-order index.
"""

from __future__ import annotations

from typing import Any, ClassVar

from mountbuilder.books import canonical_book
from mountbuilder.models.bible import Chapter
from mountbuilder.providers.base import ContentProvider, join_verses

BOLLS_BOOK_IDS: dict[str, int] = {
    "Genesis": 1, "Exodus": 2, "Leviticus": 3, "Numbers": 4, "Deuteronomy": 5,
    "Joshua": 6, "Judges": 7, "Ruth": 8, "1 Samuel": 9, "2 Samuel": 10,
    "1 Kings": 11, "2 Kings": 12, "1 Chronicles": 13, "2 Chronicles": 14,
    "Ezra": 15, "Nehemiah": 16, "Esther": 17, "Job": 18, "Psalms": 19,
    "Proverbs": 20, "Ecclesiastes": 21, "Song of Solomon": 22, "Isaiah": 23,
    "Jeremiah": 24, "Lamentations": 25, "Ezekiel": 26, "Daniel": 27,
    "Hosea": 28, "Joel": 29, "Amos": 30, "Obadiah": 31, "Jonah": 32,
    "Micah": 33, "Nahum": 34, "Habakkuk": 35, "Zephaniah": 36, "Haggai": 37,
    "Zechariah": 38, "Malachi": 39, "Matthew": 40, "Mark": 41, "Luke": 42,
    "John": 43, "Acts": 44, "Romans": 45, "1 Corinthians": 46, "2 Corinthians": 47,
    "Galatians": 48, "Ephesians": 49, "Philippians": 50, "Colossians": 51,
    "1 Thessalonians": 52, "2 Thessalonians": 53, "1 Timothy": 54, "2 Timothy": 55,
    "Titus": 56, "Philemon": 57, "Hebrews": 58, "James": 59, "1 Peter": 60,
    "2 Peter": 61, "1 John": 62, "2 John": 63, "3 John": 64, "Jude": 65,
    "Revelation": 66,
}  # fmt: skip


def bolls_book_id(book: str) -> int | None:
    canonical = canonical_book(book)
    return BOLLS_BOOK_IDS.get(canonical) if canonical is not None else None


class BollsProvider(ContentProvider):
    name: ClassVar[str] = "bolls"
    supported_translations: ClassVar[frozenset[str]] = frozenset({"NKJV", "ESV", "NLT"})

    def supports_book(self, book: str) -> bool:
        return bolls_book_id(book) is not None

    def build_url(self, book: str, chapter: int, translation: str) -> str:
        book_id = bolls_book_id(book)
        if book_id is None:
            # Selection guarantees an addressable book; reaching here is a caller bug.
            raise ValueError(f"{self.name} has no book id for {book!r}")
        return f"{self.base_url}get-text/{translation.upper()}/{book_id}/{chapter}/"

    def parse_response(
        self, data: Any, book: str, chapter: int, translation: str
    ) -> Chapter | None:
        reference = f"{canonical_book(book) or book} {chapter}"
        label = translation.upper()

        if isinstance(data, list) and data:
            text = join_verses(data)
            if text is None:
                return None
            return Chapter(reference=reference, text=text, translation=label)

        if isinstance(data, dict) and data.get("text"):
            return Chapter(reference=reference, text=str(data["text"]), translation=label)

        return None
