"""Primary provider: bible-api.com (public domain translations)."""

from __future__ import annotations

from typing import Any, ClassVar

from mountbuilder.models.bible import Chapter
from mountbuilder.providers.base import ContentProvider, join_verses


class BibleApiProvider(ContentProvider):
    name: ClassVar[str] = "bible-api"
    supported_translations: ClassVar[frozenset[str]] = frozenset({"WEB", "KJV", "ASV", "BBE"})

    def build_url(self, book: str, chapter: int, translation: str) -> str:
        # "1 Corinthians", 13 -> "1+Corinthians+13"; WEB is the service default
        query = "+".join([*book.split(), str(chapter)])
        if translation.upper() == "WEB":
            return f"{self.base_url}{query}"
        return f"{self.base_url}{query}?translation={translation.lower()}"

    def parse_response(
        self, data: Any, book: str, chapter: int, translation: str
    ) -> Chapter | None:
        if not isinstance(data, dict):
            return None

        label = (
            data.get("translation_name")
            or data.get("translation_id")
            or data.get("translation")
            or translation
        )
        reference = data.get("reference") or f"{book} {chapter}"

        verses = data.get("verses")
        if isinstance(verses, list) and verses:
            text = join_verses(verses)
            if text is None:
                return None
            return Chapter(reference=reference, text=text, translation=str(label))

        if data.get("text"):
            return Chapter(reference=reference, text=str(data["text"]), translation=str(label))

        return None
