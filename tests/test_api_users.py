"""HTTP contract tests for ``/api/users``."""

from __future__ import annotations

import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from userdir.api import create_app
from userdir.store import SQLiteRecordStore, StoreError


@pytest.fixture()
def store(tmp_path: Path) -> SQLiteRecordStore:
    db = SQLiteRecordStore(tmp_path / "users.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def client(store: SQLiteRecordStore):
    app = create_app(store=store)
    with TestClient(app) as test_client:
        yield test_client


def test_create_then_list_returns_generated_fields(client: TestClient) -> None:
    created = client.post("/users", json={"name": "Tanaka", "email": "t@example.com"})

    assert created.status_code == 201, created.text
    rows = created.json()
    assert len(rows) == 1
    assert rows[0]["name"] == "Tanaka"

    listing = client.get("/users")
    assert listing.status_code == 200
    users = listing.json()
    assert len(users) == 1
    assert users[0]["name"] == "Tanaka"
    assert users[0]["email"] == "t@example.com"
    assert users[0]["id"]
    assert users[0]["created_at"]


def test_list_is_empty_array_initially(client: TestClient) -> None:
    response = client.get("/users")

    assert response.status_code == 200
    assert response.json() == []


def test_unknown_id_returns_empty_array(client: TestClient) -> None:
    client.post("/users", json={"name": "Tanaka", "email": "t@example.com"})

    response = client.get("/users", params={"id": str(uuid.uuid4())})

    assert response.status_code == 200
    assert response.json() == []


def test_list_filters_by_id(client: TestClient) -> None:
    first = client.post("/users", json={"name": "Alice", "email": "alice@example.com"}).json()[0]
    client.post("/users", json={"name": "Bob", "email": "bob@example.com"})

    response = client.get("/users", params={"id": first["id"]})

    assert [row["id"] for row in response.json()] == [first["id"]]


def test_create_with_missing_field_is_rejected(client: TestClient) -> None:
    response = client.post("/users", json={"name": "Tanaka"})

    assert response.status_code == 400
    assert response.json() == {"error": "Name and email are required"}


def test_malformed_body_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/users",
        content="not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}


def test_update_overwrites_record(client: TestClient) -> None:
    user = client.post("/users", json={"name": "Alice", "email": "alice@example.com"}).json()[0]

    response = client.put(
        "/users",
        json={"id": user["id"], "name": "Alicia", "email": "alicia@example.com"},
    )

    assert response.status_code == 200, response.text
    rows = response.json()
    assert rows[0]["id"] == user["id"]
    assert rows[0]["name"] == "Alicia"
    assert rows[0]["created_at"] == user["created_at"]


def test_update_without_id_is_rejected(client: TestClient) -> None:
    response = client.put("/users", json={"name": "Alice", "email": "alice@example.com"})

    assert response.status_code == 400
    assert response.json() == {"error": "User id is required"}


def test_update_unknown_id_returns_not_found(client: TestClient) -> None:
    response = client.put(
        "/users",
        json={"id": str(uuid.uuid4()), "name": "Alice", "email": "alice@example.com"},
    )

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


def test_delete_is_idempotent(client: TestClient) -> None:
    user = client.post("/users", json={"name": "Alice", "email": "alice@example.com"}).json()[0]

    first = client.delete("/users", params={"id": user["id"]})
    second = client.delete("/users", params={"id": user["id"]})

    assert first.status_code == 200
    assert second.status_code == 200
    assert "message" in first.json()
    assert client.get("/users").json() == []


def test_delete_without_id_is_rejected(client: TestClient) -> None:
    response = client.delete("/users")

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid user id"}


@pytest.mark.parametrize("method", ["PATCH", "HEAD", "OPTIONS", "TRACE", "PURGE"])
def test_unsupported_verbs_return_allow_header(client: TestClient, method: str) -> None:
    response = client.request(method, "/users")

    assert response.status_code == 405
    allowed = {item.strip() for item in response.headers["allow"].split(",")}
    assert {"GET", "POST", "PUT", "DELETE"} <= allowed
    if method != "HEAD":
        assert response.json() == {"error": f"Method {method} Not Allowed"}


def test_unknown_path_returns_error_payload(client: TestClient) -> None:
    response = client.get("/missing")

    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_store_failure_returns_error_payload(store: SQLiteRecordStore) -> None:
    class FailingStore(SQLiteRecordStore):
        def list_users(self, user_id=None):
            raise StoreError("relation \"users\" does not exist")

    app = create_app(store=FailingStore(store.path))
    with TestClient(app) as client:
        response = client.get("/users")

    assert response.status_code == 500
    assert response.json() == {"error": "relation \"users\" does not exist"}


def test_healthcheck_reports_backend(client: TestClient) -> None:
    response = client.get("/health")

    assert response.json() == {"status": "ok", "store": "sqlite"}
