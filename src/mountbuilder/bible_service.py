"""Chapter lookup orchestration.

reference → ReferenceParser → ProviderSelector → ChapterCache
(→ ServerCache) → ContentProvider → both caches → ChapterLookup.

Provider errors propagate to the caller unchanged; there is no automatic
retry against another provider. Concurrent misses for the same chapter share
a single provider fetch.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Literal

import structlog

from mountbuilder.chapter_cache import make_cache_key
from mountbuilder.models.bible import ChapterLookup
from mountbuilder.parser import parse_reference

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mountbuilder.chapter_cache import ChapterCache
    from mountbuilder.models.bible import Chapter
    from mountbuilder.providers.selector import ProviderSelection, ProviderSelector
    from mountbuilder.server_cache import ServerCache

log = structlog.get_logger()


class BibleService:
    def __init__(
        self,
        selector: ProviderSelector,
        local_cache: ChapterCache,
        server_cache: ServerCache | None = None,
    ) -> None:
        self._selector = selector
        self._local = local_cache
        self._server = server_cache
        self._inflight: dict[str, asyncio.Future[Chapter]] = {}

    async def lookup(self, reference: str, translation: str = "WEB") -> ChapterLookup | None:
        """Load the chapter containing ``reference``. None if it does not parse."""
        parsed = parse_reference(reference)
        if parsed is None:
            log.info("reference_unparseable", reference=reference)
            return None
        result = await self.get_chapter(parsed.book, parsed.chapter, translation)
        return result.model_copy(update={"passage": parsed})

    async def get_chapter(self, book: str, chapter: int, translation: str) -> ChapterLookup:
        """Return a chapter from the nearest tier that has it.

        Raises ProviderError when every cache misses and the provider fails.
        """
        selection = self._selector.select(translation, book=book)
        code = selection.effective_translation

        cached = await self._local.get(book, chapter, code)
        if cached is not None:
            return _lookup(cached, selection, "local_cache")

        if self._server is not None:
            shared = await self._server.get(book, chapter, code)
            if shared is not None:
                await self._local.set(book, chapter, code, shared)
                return _lookup(shared, selection, "server_cache")

        value = await self._fetch_once(selection, book, chapter)
        return _lookup(value, selection, "provider")

    async def fetch_chapter(self, book: str, chapter: int, translation: str) -> Chapter:
        """ChapterLoader-compatible shortcut returning only the chapter record."""
        return (await self.get_chapter(book, chapter, translation)).chapter

    async def preload(self, chapters: Iterable[tuple[str, int, str]]) -> int:
        """Warm the local cache, resolving each translation the way lookups do."""
        resolved = [
            (book, chapter, self._selector.select(translation, book=book).effective_translation)
            for book, chapter, translation in chapters
        ]
        return await self._local.preload(resolved, self._fetch_from_provider)

    async def _fetch_from_provider(self, book: str, chapter: int, translation: str) -> Chapter:
        selection = self._selector.select(translation, book=book)
        return await selection.provider.fetch_chapter(
            book, chapter, selection.effective_translation
        )

    async def _fetch_once(self, selection: ProviderSelection, book: str, chapter: int) -> Chapter:
        key = make_cache_key(book, chapter, selection.effective_translation)
        pending = self._inflight.get(key)
        if pending is not None:
            log.debug("fetch_coalesced", key=key)
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._fetch_and_store(selection, book, chapter))
        self._inflight[key] = task
        task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _fetch_and_store(
        self, selection: ProviderSelection, book: str, chapter: int
    ) -> Chapter:
        code = selection.effective_translation
        value = await selection.provider.fetch_chapter(book, chapter, code)
        await self._local.set(book, chapter, code, value)
        if self._server is not None:
            await self._server.set(book, chapter, code, value)
        return value


def _lookup(
    chapter: Chapter,
    selection: ProviderSelection,
    source: Literal["local_cache", "server_cache", "provider"],
) -> ChapterLookup:
    return ChapterLookup(
        chapter=chapter,
        requested_translation=selection.requested_translation,
        effective_translation=selection.effective_translation,
        substituted=selection.substituted,
        source=source,
    )
