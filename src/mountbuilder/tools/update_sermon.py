"""Tool handler for update_sermon."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import structlog

from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.tools import SermonUpdateInput
from mountbuilder.tools.add_sermon import sermon_output

if TYPE_CHECKING:
    import datetime as dt

    from mountbuilder.state import AppState


async def handle(
    sermon_id: str,
    title: str | None,
    speaker: str | None,
    series: str | None,
    verse_reference: str | None,
    notes: str | None,
    date: dt.date | str | None,
    tags: list[str] | None,
    state: AppState,
) -> dict:
    """Handle an update_sermon tool call. Omitted fields keep their value."""
    log = structlog.get_logger().bind(tool="update_sermon", sermon_id=sermon_id)
    log.info("handler_called")

    try:
        validated = SermonUpdateInput(
            sermon_id=sermon_id,
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
            suggestion="Pass the sermon id and only the fields to change.",
            recoverable=False,
        ) from exc

    record = await state.library.update(validated.sermon_id, validated.changes())
    if record is None:
        raise_not_found(validated.sermon_id)
    return sermon_output(record).model_dump(mode="json")


def raise_not_found(sermon_id: str) -> NoReturn:
    raise MountBuilderError(
        code=ErrorCode.SERMON_NOT_FOUND,
        message=f"No sermon with id {sermon_id!r}",
        suggestion="Use search_sermons or filter_sermons to find the sermon id.",
        recoverable=False,
    )
