"""Unit tests for the HTTP sermon store."""

from __future__ import annotations

import datetime as dt
import json
from datetime import UTC, datetime

import httpx
import pytest
import respx

from mountbuilder.errors import ErrorCode, RemoteStoreError
from mountbuilder.models.sermon import SermonRecord
from mountbuilder.remote_store import HttpSermonStore, sermon_payload

API = "https://sermons.example.org/api"


def _sermon(remote_id: int, **fields: object) -> dict[str, object]:
    return {
        "id": remote_id,
        "title": f"Sermon {remote_id}",
        "verse_reference": "John 3:16",
        "created_at": "2026-01-01T10:00:00",
        "updated_at": "2026-01-02T10:00:00Z",
        **fields,
    }


def _ok(data: object) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "data": data})


@pytest.fixture()
def store(http_client: httpx.AsyncClient) -> HttpSermonStore:
    return HttpSermonStore(http_client, API + "/", token="secret")


class TestPayload:
    def test_camel_case_reference_and_iso_date(self) -> None:
        record = SermonRecord(
            title="Grace",
            verse_reference="Ephesians 2:8",
            date=dt.date(2025, 1, 5),
            tags={"b", "a"},
        )
        payload = sermon_payload(record)
        assert payload["verseReference"] == "Ephesians 2:8"
        assert "verse_reference" not in payload
        assert payload["date"] == "2025-01-05"
        assert payload["tags"] == ["a", "b"]

    def test_missing_date_is_null(self) -> None:
        assert sermon_payload(SermonRecord(title="Grace"))["date"] is None


class TestListPage:
    @respx.mock
    async def test_parses_envelope(self, store: HttpSermonStore) -> None:
        route = respx.get(f"{API}/sermons").mock(
            return_value=_ok({"sermons": [_sermon(1), _sermon(2)], "totalPages": 3})
        )
        page = await store.list_page(2, 50)

        assert [item.id for item in page.items] == [1, 2]
        assert page.total_pages == 3
        request = route.calls.last.request
        assert request.url.params["page"] == "2"
        assert request.url.params["limit"] == "50"
        assert request.headers["Authorization"] == "Bearer secret"

    @respx.mock
    async def test_naive_timestamps_are_utc(self, store: HttpSermonStore) -> None:
        respx.get(f"{API}/sermons").mock(
            return_value=_ok({"sermons": [_sermon(1)], "totalPages": 1})
        )
        [item] = (await store.list_page(1, 100)).items
        assert item.created_at == datetime(2026, 1, 1, 10, tzinfo=UTC)
        assert item.modified_at == datetime(2026, 1, 2, 10, tzinfo=UTC)

    @respx.mock
    async def test_no_token_no_header(self, http_client: httpx.AsyncClient) -> None:
        route = respx.get(f"{API}/sermons").mock(
            return_value=_ok({"sermons": [], "totalPages": 0})
        )
        await HttpSermonStore(http_client, API).list_page(1, 100)
        assert "Authorization" not in route.calls.last.request.headers


class TestFailures:
    @respx.mock
    async def test_http_error_status(self, store: HttpSermonStore) -> None:
        respx.get(f"{API}/sermons").mock(return_value=httpx.Response(503))
        with pytest.raises(RemoteStoreError) as exc_info:
            await store.list_page(1, 100)
        assert exc_info.value.status_code == 503
        assert exc_info.value.code == ErrorCode.SYNC_FAILED

    @respx.mock
    async def test_network_error(self, store: HttpSermonStore) -> None:
        respx.get(f"{API}/sermons").mock(side_effect=httpx.ConnectError("offline"))
        with pytest.raises(RemoteStoreError) as exc_info:
            await store.list_page(1, 100)
        assert exc_info.value.status_code is None

    @respx.mock
    async def test_unsuccessful_envelope(self, store: HttpSermonStore) -> None:
        respx.post(f"{API}/sermons").mock(
            return_value=httpx.Response(200, json={"success": False, "error": "nope"})
        )
        with pytest.raises(RemoteStoreError):
            await store.create(SermonRecord(title="Grace"))

    @respx.mock
    async def test_invalid_json(self, store: HttpSermonStore) -> None:
        respx.post(f"{API}/sermons").mock(return_value=httpx.Response(200, text="<html>"))
        with pytest.raises(RemoteStoreError):
            await store.create(SermonRecord(title="Grace"))

    @respx.mock
    async def test_unexpected_sermon_shape(self, store: HttpSermonStore) -> None:
        respx.post(f"{API}/sermons").mock(return_value=_ok({"title": "no id"}))
        with pytest.raises(RemoteStoreError):
            await store.create(SermonRecord(title="Grace"))


class TestWrites:
    @respx.mock
    async def test_create_sends_payload(self, store: HttpSermonStore) -> None:
        route = respx.post(f"{API}/sermons").mock(return_value=_ok(_sermon(7, title="Grace")))
        created = await store.create(SermonRecord(title="Grace", verse_reference="John 1:1"))

        assert created.id == 7
        body = json.loads(route.calls.last.request.content)
        assert body["title"] == "Grace"
        assert body["verseReference"] == "John 1:1"

    @respx.mock
    async def test_update_targets_remote_id(self, store: HttpSermonStore) -> None:
        route = respx.put(f"{API}/sermons/7").mock(return_value=_ok(_sermon(7)))
        await store.update(7, SermonRecord(title="Grace"))
        assert route.called

    @respx.mock
    async def test_bulk_import_with_wrapper(self, store: HttpSermonStore) -> None:
        route = respx.post(f"{API}/sermons/bulk").mock(
            return_value=_ok({"created": 2, "sermons": [_sermon(1), _sermon(2)]})
        )
        created = await store.bulk_import([SermonRecord(title="a"), SermonRecord(title="b")])

        assert [c.id for c in created] == [1, 2]
        body = json.loads(route.calls.last.request.content)
        assert [s["title"] for s in body["sermons"]] == ["a", "b"]

    @respx.mock
    async def test_bulk_import_bare_list(self, store: HttpSermonStore) -> None:
        respx.post(f"{API}/sermons/bulk").mock(return_value=_ok([_sermon(1)]))
        created = await store.bulk_import([SermonRecord(title="a")])
        assert [c.id for c in created] == [1]

    @respx.mock
    async def test_bulk_import_unexpected_shape(self, store: HttpSermonStore) -> None:
        respx.post(f"{API}/sermons/bulk").mock(return_value=_ok({"created": 1}))
        with pytest.raises(RemoteStoreError):
            await store.bulk_import([SermonRecord(title="a")])

    @respx.mock
    async def test_create_without_data_fails(self, store: HttpSermonStore) -> None:
        respx.post(f"{API}/sermons").mock(
            return_value=httpx.Response(200, json={"success": True, "message": "ok"})
        )
        with pytest.raises(RemoteStoreError):
            await store.create(SermonRecord(title="Grace"))


class TestDelete:
    @respx.mock
    async def test_delete_targets_remote_id(self, store: HttpSermonStore) -> None:
        route = respx.delete(f"{API}/sermons/7").mock(
            return_value=httpx.Response(
                200, json={"success": True, "message": "Sermon deleted successfully"}
            )
        )
        await store.delete(7)
        assert route.called
        assert route.calls.last.request.headers["Authorization"] == "Bearer secret"

    @respx.mock
    async def test_missing_sermon_reports_status(self, store: HttpSermonStore) -> None:
        respx.delete(f"{API}/sermons/7").mock(
            return_value=httpx.Response(404, json={"success": False, "error": "Sermon not found"})
        )
        with pytest.raises(RemoteStoreError) as exc_info:
            await store.delete(7)
        assert exc_info.value.status_code == 404
