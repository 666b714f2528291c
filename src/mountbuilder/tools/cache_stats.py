"""Tool handler for cache_stats."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.models.tools import CacheStatsOutput

if TYPE_CHECKING:
    from mountbuilder.state import AppState

POPULAR_LIMIT = 10


async def handle(state: AppState) -> dict:
    """Handle a cache_stats tool call."""
    log = structlog.get_logger().bind(tool="cache_stats")
    log.info("handler_called")

    server_stats = None
    popular = []
    if state.server_cache is not None:
        server_stats = await state.server_cache.stats()
        popular = await state.server_cache.most_popular(POPULAR_LIMIT)

    output = CacheStatsOutput(
        local=state.chapter_cache.stats(),
        server=server_stats,
        popular=popular,
    )
    return output.model_dump(mode="json")
