"""Record store adapters for the ``users`` table.

Two backends share one contract:

* :class:`RestRecordStore` talks to a hosted table through its PostgREST
  endpoint (``<url>/rest/v1/<table>``).
* :class:`SQLiteRecordStore` keeps the table in a local SQLite file.

Every operation either returns :class:`~userdir.models.UserRecord` rows or
raises :class:`ValidationError` / :class:`StoreError`.
"""
from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from .config import DEFAULT_TABLE, StoreSettings
from .models import UserRecord

logger = logging.getLogger("userdir.store")

SQLITE_URL_PREFIX = "sqlite:///"


class ValidationError(ValueError):
    """Raised when a required field is missing."""


class StoreError(RuntimeError):
    """Raised when the backing store is unreachable or rejects a call."""


class RecordNotFoundError(StoreError):
    """Raised when an update targets an id the store does not hold."""


def _required_text(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _validate_fields(name: Optional[str], email: Optional[str]) -> tuple[str, str]:
    cleaned_name = _required_text(name)
    cleaned_email = _required_text(email)
    if not cleaned_name or not cleaned_email:
        raise ValidationError("Name and email are required")
    return cleaned_name, cleaned_email


class RecordStore:
    """Interface shared by the store backends."""

    backend = "abstract"

    def initialize(self) -> None:
        """Prepare the backing table. The default is a no-op."""

    def list_users(self, user_id: Optional[str] = None) -> List[UserRecord]:
        raise NotImplementedError

    def create_user(self, name: Optional[str], email: Optional[str]) -> List[UserRecord]:
        raise NotImplementedError

    def update_user(
        self,
        user_id: Optional[str],
        *,
        name: Optional[str],
        email: Optional[str],
    ) -> List[UserRecord]:
        raise NotImplementedError

    def delete_user(self, user_id: Optional[str]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release any held resources."""


# ----------------------------------------------------------------------
# SQLite backend
# ----------------------------------------------------------------------
def resolve_sqlite_path(value: Optional[str]) -> Path:
    """Resolve the on-disk path for a ``sqlite:///`` URL or bare path."""

    if value:
        if value.startswith(SQLITE_URL_PREFIX):
            value = value[len(SQLITE_URL_PREFIX):]
        return Path(value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


class SQLiteRecordStore(RecordStore):
    """Simple wrapper around SQLite holding the ``users`` table."""

    backend = "sqlite"

    def __init__(self, path: Path, *, table: str = DEFAULT_TABLE) -> None:
        if not table.isidentifier():
            raise ValueError(f"Invalid table name '{table}'")
        path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        self._table = table

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the table if it does not already exist."""

        try:
            with self._connect() as conn:
                conn.executescript(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self._table} (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        email TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    );

                    CREATE INDEX IF NOT EXISTS idx_{self._table}_created_at ON {self._table}(created_at);
                    """
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to initialise table '{self._table}': {exc}") from exc

    def list_users(self, user_id: Optional[str] = None) -> List[UserRecord]:
        query = f"SELECT * FROM {self._table}"
        params: tuple[Any, ...] = ()
        if user_id is not None:
            query += " WHERE id = ?"
            params = (str(user_id),)
        query += " ORDER BY created_at, rowid"

        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        return [UserRecord.from_row(row) for row in rows]

    def create_user(self, name: Optional[str], email: Optional[str]) -> List[UserRecord]:
        cleaned_name, cleaned_email = _validate_fields(name, email)
        record = UserRecord(
            id=str(uuid.uuid4()),
            name=cleaned_name,
            email=cleaned_email,
            created_at=_current_timestamp(),
        )

        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO {self._table} (id, name, email, created_at) VALUES (?, ?, ?, ?)",
                    (record.id, record.name, record.email, record.created_at.isoformat()),
                )
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        return [record]

    def update_user(
        self,
        user_id: Optional[str],
        *,
        name: Optional[str],
        email: Optional[str],
    ) -> List[UserRecord]:
        identifier = _required_text(user_id)
        if not identifier:
            raise ValidationError("User id is required")
        cleaned_name, cleaned_email = _validate_fields(name, email)

        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    f"UPDATE {self._table} SET name = ?, email = ? WHERE id = ?",
                    (cleaned_name, cleaned_email, identifier),
                )
                updated = cursor.rowcount
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

        if updated == 0:
            raise RecordNotFoundError(f"User {identifier} not found")
        return self.list_users(identifier)

    def delete_user(self, user_id: Optional[str]) -> None:
        identifier = _required_text(user_id)
        if not identifier:
            raise ValidationError("Invalid user id")

        try:
            with self._connect() as conn:
                conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (identifier,))
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc


# ----------------------------------------------------------------------
# Hosted table over PostgREST
# ----------------------------------------------------------------------
def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "error", "details", "hint"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


class RestRecordStore(RecordStore):
    """Forward record operations to a hosted table's REST endpoint."""

    backend = "rest"

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        *,
        table: str = DEFAULT_TABLE,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        cleaned = (base_url or "").strip().rstrip("/")
        self._base_url = cleaned or None
        self._table = table
        self._client: Optional[httpx.Client] = None
        if self._base_url is None:
            return

        headers: Dict[str, str] = {"Accept": "application/json"}
        key = (api_key or "").strip()
        if key:
            headers["apikey"] = key
            headers["Authorization"] = f"Bearer {key}"
        self._client = httpx.Client(
            base_url=f"{self._base_url}/rest/v1",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def _require_client(self) -> httpx.Client:
        if self._client is None:
            raise StoreError("Record store URL is not configured")
        return self._client

    def _request(
        self,
        method: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: object = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> object:
        client = self._require_client()
        try:
            response = client.request(
                method,
                f"/{self._table}",
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.RequestError as exc:
            raise StoreError(f"Failed to contact record store: {exc}") from exc

        if response.status_code >= 400:
            try:
                parsed = response.json()
            except ValueError:
                parsed = response.text
            message = _extract_error_message(
                parsed,
                f"Record store request failed with status {response.status_code}",
            )
            raise StoreError(message)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError("Record store returned an invalid response") from exc

    @staticmethod
    def _rows(payload: object) -> List[UserRecord]:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise StoreError("Record store returned an unexpected response payload")
        try:
            return [UserRecord.from_row(row) for row in payload]
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreError("Record store rows were missing required fields") from exc

    def list_users(self, user_id: Optional[str] = None) -> List[UserRecord]:
        params = {"select": "*", "order": "created_at.asc"}
        if user_id is not None:
            params["id"] = f"eq.{user_id}"
        return self._rows(self._request("GET", params=params))

    def create_user(self, name: Optional[str], email: Optional[str]) -> List[UserRecord]:
        cleaned_name, cleaned_email = _validate_fields(name, email)
        payload = self._request(
            "POST",
            json=[{"name": cleaned_name, "email": cleaned_email}],
            headers={"Prefer": "return=representation"},
        )
        return self._rows(payload)

    def update_user(
        self,
        user_id: Optional[str],
        *,
        name: Optional[str],
        email: Optional[str],
    ) -> List[UserRecord]:
        identifier = _required_text(user_id)
        if not identifier:
            raise ValidationError("User id is required")
        cleaned_name, cleaned_email = _validate_fields(name, email)

        rows = self._rows(
            self._request(
                "PATCH",
                params={"id": f"eq.{identifier}"},
                json={"name": cleaned_name, "email": cleaned_email},
                headers={"Prefer": "return=representation"},
            )
        )
        if not rows:
            raise RecordNotFoundError(f"User {identifier} not found")
        return rows

    def delete_user(self, user_id: Optional[str]) -> None:
        identifier = _required_text(user_id)
        if not identifier:
            raise ValidationError("Invalid user id")
        self._request("DELETE", params={"id": f"eq.{identifier}"})

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


def build_record_store(
    settings: StoreSettings,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> RecordStore:
    """Choose a backend from the configured store URL."""

    url = settings.url
    if url and not url.startswith(("http://", "https://")):
        path = resolve_sqlite_path(url)
        logger.info("Using SQLite record store at %s", path)
        return SQLiteRecordStore(path, table=settings.table)

    if url:
        logger.info("Using hosted record store for table '%s'", settings.table)
    return RestRecordStore(url, settings.key, table=settings.table, transport=transport)


__all__ = [
    "RecordNotFoundError",
    "RecordStore",
    "RestRecordStore",
    "SQLiteRecordStore",
    "StoreError",
    "ValidationError",
    "build_record_store",
    "resolve_sqlite_path",
]
