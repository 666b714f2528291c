"""Tool handler for migrate_sermons.

Bulk-imports every sermon that has never been synced. Sermons already known
remotely are left alone; use sync_sermons for those.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.models.tools import MigrateSermonsOutput
from mountbuilder.tools.sync_sermons import require_sync

if TYPE_CHECKING:
    from mountbuilder.state import AppState


async def handle(state: AppState) -> dict:
    """Handle a migrate_sermons tool call."""
    log = structlog.get_logger().bind(tool="migrate_sermons")
    log.info("handler_called")

    sync = require_sync(state)
    result = await sync.migrate_to_cloud(state.library)
    output = MigrateSermonsOutput(result=result, status=sync.status(state.library))
    return output.model_dump(mode="json")
