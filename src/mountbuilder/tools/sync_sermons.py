"""Tool handler for sync_sermons."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.tools import SyncSermonsOutput

if TYPE_CHECKING:
    from mountbuilder.state import AppState
    from mountbuilder.sync import SyncCoordinator


def require_sync(state: AppState) -> SyncCoordinator:
    """The configured coordinator, or SYNC_NOT_CONFIGURED."""
    if state.sync is None:
        raise MountBuilderError(
            code=ErrorCode.SYNC_NOT_CONFIGURED,
            message="No sync API is configured",
            suggestion="Set sync.api_base_url (MOUNTBUILDER__SYNC__API_BASE_URL) to enable sync.",
            recoverable=False,
        )
    return state.sync


async def handle(state: AppState) -> dict:
    """Handle a sync_sermons tool call."""
    log = structlog.get_logger().bind(tool="sync_sermons")
    log.info("handler_called")

    sync = require_sync(state)
    result = await sync.full_sync(state.library)
    output = SyncSermonsOutput(result=result, status=sync.status(state.library))
    return output.model_dump(mode="json")
