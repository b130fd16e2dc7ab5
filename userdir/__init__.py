"""User directory: a CRUD service over a ``users`` table with server-rendered screens."""

from __future__ import annotations

from typing import Any

from .config import StoreSettings, load_store_settings
from .models import UserRecord
from .store import (
    RecordNotFoundError,
    RecordStore,
    RestRecordStore,
    SQLiteRecordStore,
    StoreError,
    ValidationError,
    build_record_store,
)


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the combined web + API application."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


def create_api_app(*args: Any, **kwargs: Any):
    """Factory function for the API-only application."""

    from .api import create_app as _create_api_app

    return _create_api_app(*args, **kwargs)


def create_web_app(*args: Any, **kwargs: Any):
    """Factory function for the web-only application."""

    from .web import create_app as _create_web_app

    return _create_web_app(*args, **kwargs)


__all__ = [
    "RecordNotFoundError",
    "RecordStore",
    "RestRecordStore",
    "SQLiteRecordStore",
    "StoreError",
    "StoreSettings",
    "UserRecord",
    "ValidationError",
    "build_record_store",
    "create_api_app",
    "create_app",
    "create_web_app",
    "load_store_settings",
]
