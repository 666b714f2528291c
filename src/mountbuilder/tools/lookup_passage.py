"""Tool handler for lookup_passage.

Parses a human reference, loads the containing chapter through BibleService
and returns it with the passage bounds. No MCP or FastMCP imports; server.py
handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.tools import ChapterOutput, LookupPassageInput

if TYPE_CHECKING:
    from mountbuilder.models.bible import ChapterLookup
    from mountbuilder.state import AppState


async def handle(reference: str, translation: str, state: AppState) -> dict:
    """Handle a lookup_passage tool call."""
    log = structlog.get_logger().bind(tool="lookup_passage", reference=reference)
    log.info("handler_called")

    try:
        validated = LookupPassageInput(reference=reference, translation=translation)
    except ValueError as exc:
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a reference such as 'John 3:16' and a translation code like 'KJV'.",
            recoverable=False,
        ) from exc

    result = await state.bible.lookup(validated.reference, validated.translation)
    if result is None:
        raise MountBuilderError(
            code=ErrorCode.INVALID_REFERENCE,
            message=f"Could not parse reference: {validated.reference!r}",
            suggestion="Use 'Book chapter' or 'Book chapter:verse[-verse]', e.g. '1 Corinthians 13:4-7'.",
            recoverable=False,
        )

    return chapter_output(result)


def chapter_output(result: ChapterLookup) -> dict:
    """Build the tool output shared by lookup_passage and get_chapter."""
    passage = result.passage
    output = ChapterOutput(
        reference=result.chapter.reference,
        text=result.chapter.text,
        translation_label=result.chapter.translation,
        requested_translation=result.requested_translation,
        effective_translation=result.effective_translation,
        substituted=result.substituted,
        source=result.source,
        passage=passage.normalized if passage else None,
        verse_start=passage.verse_start if passage else None,
        verse_end=passage.verse_end if passage else None,
    )
    return output.model_dump(mode="json")
