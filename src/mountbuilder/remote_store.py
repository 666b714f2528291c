"""REST client for the sermon object store.

Every response is wrapped as ``{"success": bool, "data": ...}``; a delete
answers with ``success`` and a message only. Requests are authenticated
with a bearer token when one is configured. Any transport failure, non-2xx
status or envelope without ``success`` surfaces as RemoteStoreError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import ValidationError

from mountbuilder.errors import RemoteStoreError
from mountbuilder.models.sermon import RemoteSermon
from mountbuilder.models.sync import RemotePage

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mountbuilder.models.sermon import RemoteId, SermonRecord

log = structlog.get_logger()


def sermon_payload(record: SermonRecord) -> dict[str, Any]:
    """Request body for create, update and bulk import."""
    return {
        "title": record.title,
        "speaker": record.speaker,
        "series": record.series,
        "notes": record.notes,
        "verseReference": record.verse_reference,
        "date": record.date.isoformat() if record.date else None,
        "tags": sorted(record.tags),
    }


class HttpSermonStore:
    """RemoteSermonStore over the ``/sermons`` REST API."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, token: str | None = None) -> None:
        self._client = client
        self.base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            log.warning("remote_store_request_failed", method=method, url=url, reason="network")
            raise RemoteStoreError(f"Network error calling {method} {path}: {exc}") from exc

        if not response.is_success:
            log.warning(
                "remote_store_request_failed",
                method=method,
                url=url,
                status_code=response.status_code,
            )
            raise RemoteStoreError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteStoreError(f"{method} {path} returned invalid JSON") from exc

        if not isinstance(body, dict) or not body.get("success"):
            raise RemoteStoreError(f"{method} {path} returned an unsuccessful envelope")
        return body.get("data")

    async def list_page(self, page: int, page_size: int) -> RemotePage:
        data = await self._request("GET", "/sermons", params={"page": page, "limit": page_size})
        try:
            return RemotePage(
                items=[RemoteSermon.model_validate(item) for item in data.get("sermons", [])],
                total_pages=int(data.get("totalPages", 0)),
            )
        except (AttributeError, TypeError, ValueError, ValidationError) as exc:
            raise RemoteStoreError(f"Unexpected sermon listing on page {page}") from exc

    async def create(self, record: SermonRecord) -> RemoteSermon:
        data = await self._request("POST", "/sermons", json=sermon_payload(record))
        return self._parse_sermon(data, "POST /sermons")

    async def update(self, remote_id: RemoteId, record: SermonRecord) -> RemoteSermon:
        data = await self._request("PUT", f"/sermons/{remote_id}", json=sermon_payload(record))
        return self._parse_sermon(data, f"PUT /sermons/{remote_id}")

    async def bulk_import(self, records: Sequence[SermonRecord]) -> list[RemoteSermon]:
        """Create up to 100 sermons in one request, returned in input order."""
        data = await self._request(
            "POST", "/sermons/bulk", json={"sermons": [sermon_payload(r) for r in records]}
        )
        # Accept both a bare list and {"created": n, "sermons": [...]}.
        items = data.get("sermons") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise RemoteStoreError("Unexpected bulk import response")
        return [self._parse_sermon(item, "POST /sermons/bulk") for item in items]

    async def delete(self, remote_id: RemoteId) -> None:
        await self._request("DELETE", f"/sermons/{remote_id}")

    @staticmethod
    def _parse_sermon(data: Any, call: str) -> RemoteSermon:
        try:
            return RemoteSermon.model_validate(data)
        except ValidationError as exc:
            raise RemoteStoreError(f"{call} returned an unexpected sermon shape") from exc
