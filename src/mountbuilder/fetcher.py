"""Shared outbound HTTP client.

Every network call (content providers, the remote sermon store) goes through
one httpx.AsyncClient built here. The composition root owns its lifecycle and
injects it into each consumer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from mountbuilder import __version__

if TYPE_CHECKING:
    from mountbuilder.config import ProviderSettings


def build_http_client(settings: ProviderSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    timeout = settings.timeout_seconds if settings is not None else 10.0
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(timeout),
        headers={
            "User-Agent": f"mountbuilder/{__version__}",
            "Accept": "application/json",
        },
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )
