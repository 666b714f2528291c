"""Tool handler for clear_server_cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.models.tools import ClearServerCacheOutput
from mountbuilder.server_cache import validate_days_old

if TYPE_CHECKING:
    from mountbuilder.state import AppState


async def handle(days_old: int, state: AppState) -> dict:
    """Handle a clear_server_cache tool call.

    Removes shared-cache entries older than ``days_old`` days (0 clears all).
    """
    log = structlog.get_logger().bind(tool="clear_server_cache", days_old=days_old)
    log.info("handler_called")

    days = validate_days_old(days_old)
    deleted = 0
    if state.server_cache is not None:
        deleted = await state.server_cache.clear_old(days)
    return ClearServerCacheOutput(days_old=days, deleted=deleted).model_dump(mode="json")
