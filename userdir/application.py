"""Application factory that serves both the API and the screens."""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI

from .api import create_app as create_api_app
from .config import StoreSettings, load_store_settings
from .store import RecordStore, build_record_store
from .web import create_app as create_web_app

logger = logging.getLogger("userdir.application")

# Requests routed in process hit the API app directly, so no "/api" prefix.
_INTERNAL_BASE_URL = "http://userdir.internal"


def _resolve_internal_api_url() -> Optional[str]:
    custom_base = os.getenv("USERDIR_INTERNAL_API_URL")
    if custom_base:
        cleaned = custom_base.strip().rstrip("/")
        return cleaned or None
    return None


def create_application(
    *,
    store: Optional[RecordStore] = None,
    settings: Optional[StoreSettings] = None,
    session_secret: Optional[str] = None,
) -> FastAPI:
    """Create the combined ASGI application.

    The screens reach the API over HTTP. Unless ``USERDIR_INTERNAL_API_URL``
    points elsewhere, those requests are routed to the mounted API app in
    process through an ASGI transport.
    """

    if store is None:
        store = build_record_store(settings or load_store_settings())
    store.initialize()

    api_app = create_api_app(store=store)

    internal_api_url = _resolve_internal_api_url()
    if internal_api_url:
        logger.info("Screens will reach the API at %s", internal_api_url)
        web_app = create_web_app(api_base_url=internal_api_url, session_secret=session_secret)
    else:
        web_app = create_web_app(
            api_base_url=_INTERNAL_BASE_URL,
            transport=httpx.ASGITransport(app=api_app, raise_app_exceptions=False),
            session_secret=session_secret,
        )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        store.close()

    app = FastAPI(
        title="User Directory",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.api = api_app
    app.state.web = web_app

    app.mount("/api", api_app)
    app.mount("/", web_app)

    return app


__all__ = ["create_application"]
