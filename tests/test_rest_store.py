"""Tests for the hosted-table backend using a mocked HTTP transport."""

from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from userdir.store import RecordNotFoundError, RestRecordStore, StoreError, ValidationError

BASE_URL = "https://project.example.co"
ROW = {
    "id": "ddc63b72-b8c4-4888-9fd2-c0a4d1c266cd",
    "name": "Tsuboi",
    "email": "tsuboi@example.com",
    "created_at": "2025-07-01T09:30:00.123456+00:00",
}


def _store(handler, captured: List[httpx.Request]) -> RestRecordStore:
    def _record(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return handler(request)

    return RestRecordStore(BASE_URL, "anon-key", transport=httpx.MockTransport(_record))


def test_list_sends_key_headers_and_filter() -> None:
    captured: List[httpx.Request] = []
    store = _store(lambda request: httpx.Response(200, json=[ROW]), captured)

    users = store.list_users(ROW["id"])

    assert [user.id for user in users] == [ROW["id"]]
    request = captured[0]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/users"
    assert request.url.params["id"] == f"eq.{ROW['id']}"
    assert request.url.params["select"] == "*"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer anon-key"


def test_list_without_filter_omits_id() -> None:
    captured: List[httpx.Request] = []
    store = _store(lambda request: httpx.Response(200, json=[]), captured)

    assert store.list_users() == []
    assert "id" not in captured[0].url.params


def test_create_posts_trimmed_row_and_requests_representation() -> None:
    captured: List[httpx.Request] = []
    store = _store(lambda request: httpx.Response(201, json=[ROW]), captured)

    created = store.create_user(" Tsuboi ", "tsuboi@example.com")

    assert created[0].name == "Tsuboi"
    request = captured[0]
    assert request.method == "POST"
    assert json.loads(request.content) == [{"name": "Tsuboi", "email": "tsuboi@example.com"}]
    assert request.headers["prefer"] == "return=representation"


def test_create_validates_before_any_request() -> None:
    captured: List[httpx.Request] = []
    store = _store(lambda request: httpx.Response(201, json=[ROW]), captured)

    with pytest.raises(ValidationError):
        store.create_user("", "tsuboi@example.com")
    assert captured == []


def test_update_with_empty_result_raises_not_found() -> None:
    captured: List[httpx.Request] = []
    store = _store(lambda request: httpx.Response(200, json=[]), captured)

    with pytest.raises(RecordNotFoundError):
        store.update_user("unknown", name="A", email="a@example.com")
    assert captured[0].method == "PATCH"
    assert captured[0].url.params["id"] == "eq.unknown"


def test_delete_accepts_no_content() -> None:
    captured: List[httpx.Request] = []
    store = _store(lambda request: httpx.Response(204), captured)

    store.delete_user(ROW["id"])

    assert captured[0].method == "DELETE"
    assert captured[0].url.params["id"] == f"eq.{ROW['id']}"


def test_error_response_message_is_surfaced() -> None:
    captured: List[httpx.Request] = []
    store = _store(
        lambda request: httpx.Response(401, json={"message": "Invalid API key"}),
        captured,
    )

    with pytest.raises(StoreError, match="Invalid API key"):
        store.list_users()


def test_transport_failure_becomes_store_error() -> None:
    def _fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = RestRecordStore(BASE_URL, "anon-key", transport=httpx.MockTransport(_fail))

    with pytest.raises(StoreError, match="Failed to contact record store"):
        store.list_users()


def test_malformed_rows_become_store_error() -> None:
    captured: List[httpx.Request] = []
    store = _store(lambda request: httpx.Response(200, json=[{"id": 1}]), captured)

    with pytest.raises(StoreError):
        store.list_users()
