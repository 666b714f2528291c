"""Tool handlers for sermon_suggestions and clear_search_history."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from mountbuilder.errors import ErrorCode, MountBuilderError
from mountbuilder.models.tools import SuggestionsInput, SuggestionsOutput

if TYPE_CHECKING:
    from mountbuilder.state import AppState


async def handle(query: str, limit: int, state: AppState) -> dict:
    """Handle a sermon_suggestions tool call.

    Queries under two characters return the recent search history.
    """
    log = structlog.get_logger().bind(tool="sermon_suggestions", query=query)
    log.info("handler_called")

    try:
        validated = SuggestionsInput(query=query, limit=limit)
    except ValueError as exc:
        raise MountBuilderError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a query up to 100 chars and a limit of 1-20.",
            recoverable=False,
        ) from exc

    suggestions = state.search.suggestions(state.library, validated.query, validated.limit)
    output = SuggestionsOutput(query=validated.query, suggestions=suggestions)
    return output.model_dump(mode="json")


async def handle_clear_history(state: AppState) -> dict:
    """Handle a clear_search_history tool call."""
    log = structlog.get_logger().bind(tool="clear_search_history")
    log.info("handler_called")

    cleared = len(state.search.history)
    await state.search.clear_history()
    return {"cleared": cleared}
