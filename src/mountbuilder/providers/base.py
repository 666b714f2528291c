"""Content provider base class.

A provider owns three things: the translations it can serve, how its request
URL is built, and how its response shape is normalized into a ``Chapter``.
The HTTP round trip and the mapping of every failure to ``ProviderError`` are
shared here so both variants fail the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx
import structlog

from mountbuilder.errors import ErrorCode, ProviderError
from mountbuilder.models.bible import Chapter

log = structlog.get_logger()


def join_verses(verses: list[Any]) -> str | None:
    """Join ``[{verse, text}, ...]`` as ``"1. In the ... 2. And ..."``.

    Returns None if any element lacks a verse number or text.
    """
    parts: list[str] = []
    for verse in verses:
        if not isinstance(verse, dict) or "verse" not in verse or "text" not in verse:
            return None
        text = " ".join(str(verse["text"]).split())
        parts.append(f"{verse['verse']}. {text}")
    return " ".join(parts)


class ContentProvider(ABC):
    """Fetches one chapter from a named external source."""

    name: ClassVar[str]
    supported_translations: ClassVar[frozenset[str]]

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"

    def supports(self, translation: str) -> bool:
        return translation.upper() in self.supported_translations

    def supports_book(self, book: str) -> bool:
        """Whether this provider can address ``book``. Checked at selection time."""
        return True

    @abstractmethod
    def build_url(self, book: str, chapter: int, translation: str) -> str: ...

    @abstractmethod
    def parse_response(
        self, data: Any, book: str, chapter: int, translation: str
    ) -> Chapter | None:
        """Normalize the provider's JSON body. Returns None for an unusable shape."""

    async def fetch_chapter(self, book: str, chapter: int, translation: str) -> Chapter:
        """Fetch and normalize one chapter.

        Raises ProviderError on network errors, non-2xx responses, invalid
        JSON and unrecognised response shapes.
        """
        url = self.build_url(book, chapter, translation)
        context = {"book": book, "chapter": chapter, "translation": translation}

        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            log.warning("provider_fetch_failed", provider=self.name, url=url, reason="network")
            raise ProviderError(
                f"Network error fetching {book} {chapter} ({translation}) from {self.name}: {exc}",
                **context,
            ) from exc

        if not response.is_success:
            log.warning(
                "provider_fetch_failed",
                provider=self.name,
                url=url,
                status_code=response.status_code,
            )
            if response.status_code == 404:
                raise ProviderError(
                    f"HTTP 404 fetching {book} {chapter} ({translation}) from {self.name}",
                    code=ErrorCode.CHAPTER_NOT_FOUND,
                    recoverable=False,
                    **context,
                )
            raise ProviderError(
                f"HTTP {response.status_code} fetching {book} {chapter} ({translation}) "
                f"from {self.name}",
                **context,
            )

        try:
            data = response.json()
        except ValueError as exc:
            log.warning("provider_fetch_failed", provider=self.name, url=url, reason="invalid_json")
            raise ProviderError(
                f"Invalid JSON from {self.name} for {book} {chapter} ({translation})",
                **context,
            ) from exc

        result = self.parse_response(data, book, chapter, translation)
        if result is None or not result.text:
            log.warning("provider_fetch_failed", provider=self.name, url=url, reason="bad_shape")
            raise ProviderError(
                f"Unrecognised response from {self.name} for {book} {chapter} ({translation})",
                **context,
            )

        log.info(
            "provider_fetch_complete",
            provider=self.name,
            reference=result.reference,
            content_length=len(result.text),
        )
        return result
