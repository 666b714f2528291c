"""Tool handler for sync_status."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.tools.sync_sermons import require_sync

if TYPE_CHECKING:
    from mountbuilder.state import AppState


async def handle(state: AppState) -> dict:
    """Handle a sync_status tool call."""
    log = structlog.get_logger().bind(tool="sync_status")
    log.info("handler_called")

    sync = require_sync(state)
    return sync.status(state.library).model_dump(mode="json")
