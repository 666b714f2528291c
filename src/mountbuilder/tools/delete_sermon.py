"""Tool handler for delete_sermon.

With sync configured the remote copy is deleted right away; if that fails,
or sync is not configured, the library keeps a tombstone and the next sync
deletes it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.tools import DeleteSermonOutput
from mountbuilder.tools.add_sermon import sermon_output
from mountbuilder.tools.update_sermon import raise_not_found

if TYPE_CHECKING:
    from mountbuilder.state import AppState


async def handle(sermon_id: str, state: AppState) -> dict:
    """Handle a delete_sermon tool call."""
    log = structlog.get_logger().bind(tool="delete_sermon", sermon_id=sermon_id)
    log.info("handler_called")

    if not sermon_id or len(sermon_id) > 64:
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=f"Invalid sermon id: {sermon_id!r}",
            suggestion="Pass the id returned by add_sermon or search_sermons.",
            recoverable=False,
        )

    if state.sync is not None:
        record = await state.sync.delete_sermon(state.library, sermon_id)
    else:
        record = await state.library.delete(sermon_id)
    if record is None:
        raise_not_found(sermon_id)

    output = DeleteSermonOutput(
        deleted=sermon_output(record),
        remote_pending=record.remote_id is not None
        and record.remote_id in state.library.tombstones,
    )
    return output.model_dump(mode="json")
