"""Tool handler for filter_sermons.

Advanced search: exact speaker/series, date range, verse presence and tag
filters, then either relevance ranking by ``query`` or a fixed sort order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.search import SearchFilters
from mountbuilder.models.tools import FilterSermonsInput, FilterSermonsOutput
from mountbuilder.tools.add_sermon import sermon_output

if TYPE_CHECKING:
    from mountbuilder.state import AppState


async def handle(arguments: dict, state: AppState) -> dict:
    """Handle a filter_sermons tool call. ``arguments`` holds the tool inputs."""
    log = structlog.get_logger().bind(tool="filter_sermons")
    log.info("handler_called")

    try:
        validated = FilterSermonsInput.model_validate(arguments)
    except ValueError as exc:
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Dates are YYYY-MM-DD; sort_by is relevance, date-desc, date-asc or title.",
            recoverable=False,
        ) from exc

    if validated.date_from and validated.date_to and validated.date_from > validated.date_to:
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=f"date_from {validated.date_from} is after date_to {validated.date_to}",
            suggestion="Swap the dates or drop one of them.",
            recoverable=False,
        )

    filters = SearchFilters(
        **validated.model_dump(exclude={"tags", "limit"}),
        tags=frozenset(validated.tags),
    )
    records = await state.search.advanced_search(state.library, filters)

    output = FilterSermonsOutput(
        total=len(records),
        results=[sermon_output(record) for record in records[: validated.limit]],
    )
    return output.model_dump(mode="json")
