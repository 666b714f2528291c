"""Tool handler for preload_chapters.

Warms the local chapter cache ahead of offline use. References may name a
chapter or a verse; either way the whole chapter is cached once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.tools import PreloadChaptersInput, PreloadChaptersOutput
from mountbuilder.parser import parse_reference

if TYPE_CHECKING:
    from mountbuilder.state import AppState


async def handle(references: list[str], translation: str, state: AppState) -> dict:
    """Handle a preload_chapters tool call."""
    log = structlog.get_logger().bind(tool="preload_chapters", count=len(references))
    log.info("handler_called")

    try:
        validated = PreloadChaptersInput(references=references, translation=translation)
    except ValueError as exc:
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Pass 1-50 references such as 'Psalm 23' and a translation code.",
            recoverable=False,
        ) from exc

    chapters: dict[tuple[str, int], None] = {}
    invalid = []
    for reference in validated.references:
        parsed = parse_reference(reference)
        if parsed is None:
            invalid.append(reference)
        else:
            chapters.setdefault((parsed.book, parsed.chapter))
    if invalid:
        raise MountBuilderError(
            code=ErrorCode.INVALID_REFERENCE,
            message=f"Could not parse references: {', '.join(map(repr, invalid))}",
            suggestion="Use 'Book chapter' or 'Book chapter:verse', e.g. 'John 3'.",
            recoverable=False,
        )

    loaded = await state.bible.preload(
        (book, chapter, validated.translation) for book, chapter in chapters
    )
    return PreloadChaptersOutput(requested=len(chapters), loaded=loaded).model_dump(mode="json")
