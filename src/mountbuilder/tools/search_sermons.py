"""Tool handler for search_sermons.

Runs a ranked fuzzy search over the local sermon library. No MCP or FastMCP
imports; server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.search import SearchOptions
from mountbuilder.models.tools import SearchSermonsInput, SearchSermonsOutput, SermonHit

if TYPE_CHECKING:
    from mountbuilder.models.search import SearchResult
    from mountbuilder.state import AppState


async def handle(
    query: str,
    min_relevance: int,
    fuzzy: bool,
    limit: int,
    state: AppState,
) -> dict:
    """Handle a search_sermons tool call."""
    log = structlog.get_logger().bind(tool="search_sermons", query=query)
    log.info("handler_called")

    try:
        validated = SearchSermonsInput(
            query=query, min_relevance=min_relevance, fuzzy=fuzzy, limit=limit
        )
    except ValueError as exc:
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a query up to 500 chars, min_relevance >= 0, limit 1-100.",
            recoverable=False,
        ) from exc

    results = await state.search.search(
        state.library,
        validated.query,
        SearchOptions(fuzzy=validated.fuzzy, min_relevance=validated.min_relevance),
    )

    output = SearchSermonsOutput(
        query=validated.query,
        total=len(results),
        results=[_hit(result) for result in results[: validated.limit]],
    )
    return output.model_dump(mode="json")


def _hit(result: SearchResult) -> SermonHit:
    item = result.item
    fields = list(dict.fromkeys(match.field for match in result.matches))
    types = list(dict.fromkeys(match.match_type for match in result.matches))
    return SermonHit(
        id=item.id,
        remote_id=item.remote_id,
        title=item.title,
        speaker=item.speaker,
        series=item.series,
        verse_reference=item.verse_reference,
        date=item.date,
        relevance=result.relevance,
        matched_fields=fields,
        match_types=types,
    )
