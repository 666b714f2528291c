"""Tool handler for add_sermon.

Saves a new sermon to the local library. It reaches the remote store on the
next sync_sermons or migrate_sermons call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.sermon import SermonRecord
from mountbuilder.models.tools import SermonInput, SermonOutput

if TYPE_CHECKING:
    import datetime as dt

    from mountbuilder.state import AppState


async def handle(
    title: str,
    speaker: str,
    series: str,
    verse_reference: str,
    notes: str,
    date: dt.date | str | None,
    tags: list[str],
    state: AppState,
) -> dict:
    """Handle an add_sermon tool call."""
    log = structlog.get_logger().bind(tool="add_sermon", title=title)
    log.info("handler_called")

    try:
        validated = SermonInput(
            title=title,
            speaker=speaker,
            series=series,
            verse_reference=verse_reference,
            notes=notes,
            date=date,
            tags=tags,
        )
    except ValueError as exc:
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a title, an ISO date (YYYY-MM-DD) and at most 20 tags.",
            recoverable=False,
        ) from exc

    record = await state.library.add(
        SermonRecord(**validated.model_dump(exclude={"tags"}), tags=set(validated.tags))
    )
    return sermon_output(record).model_dump(mode="json")


def sermon_output(record: SermonRecord) -> SermonOutput:
    """Output shape of a library record, shared by every sermon tool."""
    return SermonOutput(
        id=record.id,
        remote_id=record.remote_id,
        title=record.title,
        speaker=record.speaker,
        series=record.series,
        verse_reference=record.verse_reference,
        notes=record.notes,
        date=record.date,
        tags=sorted(record.tags),
        last_modified=record.last_modified,
        last_synced=record.last_synced,
        needs_sync=record.needs_sync,
    )
