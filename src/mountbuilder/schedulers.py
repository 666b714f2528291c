"""Startup maintenance coroutines."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.errors import MountBuilderError

if TYPE_CHECKING:
    from mountbuilder.state import AppState

log = structlog.get_logger()


async def run_server_cache_cleanup(state: AppState) -> int:
    """Purge shared cache entries older than ``server_cache.cleanup_days``, once."""
    if state.server_cache is None:
        return 0
    try:
        return await state.server_cache.clear_old(state.settings.server_cache.cleanup_days)
    except MountBuilderError:
        log.warning("server_cache_cleanup_rejected", exc_info=True)
        return 0
