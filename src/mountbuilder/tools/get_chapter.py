"""Tool handler for get_chapter."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.books import canonical_book, chapter_count
from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.tools import GetChapterInput
from mountbuilder.tools.lookup_passage import chapter_output

if TYPE_CHECKING:
    from mountbuilder.state import AppState


async def handle(book: str, chapter: int, translation: str, state: AppState) -> dict:
    """Handle a get_chapter tool call."""
    log = structlog.get_logger().bind(tool="get_chapter", book=book, chapter=chapter)
    log.info("handler_called")

    try:
        validated = GetChapterInput(book=book, chapter=chapter, translation=translation)
    except ValueError as exc:
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a book name, a chapter number >= 1 and a translation code.",
            recoverable=False,
        ) from exc

    name = canonical_book(validated.book) or validated.book
    count = chapter_count(name)
    if count is not None and validated.chapter > count:
        raise MountBuilderError(
            code=ErrorCode.INVALID_REFERENCE,
            message=f"{name} has {count} chapters, got {validated.chapter}",
            suggestion=f"Pick a chapter between 1 and {count}.",
            recoverable=False,
        )

    result = await state.bible.get_chapter(name, validated.chapter, validated.translation)
    return chapter_output(result)
