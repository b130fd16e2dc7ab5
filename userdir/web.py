"""Server-rendered screens for the user directory."""
from __future__ import annotations

import logging
import os
import secrets
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import httpx
from fastapi import FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware

from .client import UserDirectoryClient
from .screens import (
    ADD_PATH,
    CONFIRM_DELETE,
    LIST_PATH,
    USER_ADDED,
    USER_DELETED,
    AddScreen,
    DetailScreen,
    EditScreen,
    ListScreen,
    ScreenStatus,
    detail_path,
    edit_path,
)

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

logger = logging.getLogger("userdir.web")


def _format_datetime(value: datetime) -> str:
    return value.astimezone().strftime("%Y/%m/%d %H:%M:%S")


def _format_date(value: datetime) -> str:
    return value.astimezone().strftime("%Y/%m/%d")


def create_app(
    *,
    client: Optional[UserDirectoryClient] = None,
    api_base_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    session_secret: Optional[str] = None,
) -> FastAPI:
    """Create the web application that renders the four screens."""

    if client is None:
        if api_base_url is None:
            api_base_url = os.getenv("USERDIR_INTERNAL_API_URL")
        if not api_base_url:
            raise RuntimeError("USERDIR_INTERNAL_API_URL must be configured to serve the web interface")
        client = UserDirectoryClient(api_base_url, transport=transport)

    if session_secret is None:
        session_secret = os.getenv("USERDIR_SESSION_SECRET")
    if not session_secret:
        logger.warning("USERDIR_SESSION_SECRET is not set; flash messages will not survive a restart")
        session_secret = secrets.token_urlsafe(32)

    app = FastAPI(
        title="User Directory",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.client = client
    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        session_cookie="userdir_session",
        same_site="lax",
    )

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
    templates.env.filters["datetime"] = _format_datetime
    templates.env.filters["date"] = _format_date
    templates.env.globals.update(
        list_path=LIST_PATH,
        add_path=ADD_PATH,
        detail_path=detail_path,
        edit_path=edit_path,
        confirm_delete_message=CONFIRM_DELETE,
        ScreenStatus=ScreenStatus,
    )

    def _flash(request: Request, message: str, *, category: str = "info") -> None:
        messages = request.session.get("flash_messages")
        if not isinstance(messages, list):
            messages = []
        messages.append({"message": message, "category": category})
        request.session["flash_messages"] = messages

    def _consume_flash(request: Request) -> List[Dict[str, str]]:
        messages = request.session.pop("flash_messages", [])
        if isinstance(messages, list):
            return messages
        return []

    def _flash_outcome(request: Request, screen: ListScreen, notice: str) -> None:
        _flash(request, notice, category="success")
        # The mutation went through but the list could not be reloaded.
        if screen.state.status is ScreenStatus.ERROR:
            _flash(request, screen.state.message or "", category="error")

    def _render(request: Request, template: str, *, status_code: int = 200, **context: object) -> HTMLResponse:
        context.setdefault("messages", _consume_flash(request))
        return templates.TemplateResponse(request, template, context, status_code=status_code)

    def _see_other(url: str) -> RedirectResponse:
        return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)

    def _record_status(screen: DetailScreen | EditScreen) -> int:
        return status.HTTP_404_NOT_FOUND if screen.not_found else status.HTTP_200_OK

    @app.get("/", response_class=HTMLResponse, name="list_users")
    async def list_users(request: Request):
        screen = ListScreen(client)
        await screen.mount()
        try:
            return _render(request, "list.html", screen=screen)
        finally:
            screen.unmount()

    @app.post("/", name="create_user_inline")
    async def create_user_inline(request: Request, name: str = Form(""), email: str = Form("")):
        screen = ListScreen(client)
        await screen.mount()
        try:
            if await screen.submit(name, email):
                _flash_outcome(request, screen, USER_ADDED)
                return _see_other(request.url_for("list_users").path)
            return _render(request, "list.html", screen=screen)
        finally:
            screen.unmount()

    @app.get("/users/add", response_class=HTMLResponse, name="add_user")
    async def add_user_form(request: Request):
        screen = AddScreen(client)
        await screen.mount()
        try:
            return _render(request, "add.html", screen=screen)
        finally:
            screen.unmount()

    @app.post("/users/add", response_class=HTMLResponse, name="submit_add_user")
    async def submit_add_user(request: Request, name: str = Form(""), email: str = Form("")):
        screen = AddScreen(client)
        await screen.mount()
        try:
            await screen.submit(name, email)
            return _render(request, "add.html", screen=screen, redirect=screen.redirect)
        finally:
            screen.unmount()

    @app.get("/users/{user_id}", response_class=HTMLResponse, name="user_detail")
    async def user_detail(request: Request, user_id: str):
        screen = DetailScreen(client, user_id)
        await screen.mount()
        try:
            return _render(request, "detail.html", screen=screen, status_code=_record_status(screen))
        finally:
            screen.unmount()

    @app.get("/users/{user_id}/edit", response_class=HTMLResponse, name="edit_user")
    async def edit_user_form(request: Request, user_id: str):
        screen = EditScreen(client, user_id)
        await screen.mount()
        try:
            return _render(request, "edit.html", screen=screen, status_code=_record_status(screen))
        finally:
            screen.unmount()

    @app.post("/users/{user_id}/edit", response_class=HTMLResponse, name="submit_edit_user")
    async def submit_edit_user(
        request: Request,
        user_id: str,
        name: str = Form(""),
        email: str = Form(""),
    ):
        screen = EditScreen(client, user_id)
        await screen.mount()
        try:
            if screen.user is not None:
                screen.edit(name=name, email=email)
                await screen.submit()
            return _render(
                request,
                "edit.html",
                screen=screen,
                redirect=screen.redirect,
                status_code=_record_status(screen),
            )
        finally:
            screen.unmount()

    @app.get("/users/{user_id}/delete", response_class=HTMLResponse, name="confirm_delete_user")
    async def confirm_delete_user(request: Request, user_id: str, next: str = ""):
        screen = DetailScreen(client, user_id)
        await screen.mount()
        try:
            return _render(
                request,
                "confirm_delete.html",
                screen=screen,
                next=next,
                status_code=_record_status(screen),
            )
        finally:
            screen.unmount()

    @app.post("/users/{user_id}/delete", name="delete_user")
    async def delete_user(
        request: Request,
        user_id: str,
        confirmed: str = Form(""),
        next: str = Form(""),
    ):
        if confirmed != "yes":
            url = request.url_for("confirm_delete_user", user_id=user_id).include_query_params(next=next)
            return _see_other(f"{url.path}?{url.query}")

        def _accept(_: str) -> bool:
            return True

        if next == "list":
            list_screen = ListScreen(client)
            try:
                if await list_screen.delete(user_id, _accept):
                    _flash_outcome(request, list_screen, USER_DELETED)
                else:
                    _flash(request, list_screen.state.message or "", category="error")
                return _see_other(request.url_for("list_users").path)
            finally:
                list_screen.unmount()

        screen = DetailScreen(client, user_id)
        await screen.mount()
        try:
            await screen.delete(_accept)
            return _render(
                request,
                "detail.html",
                screen=screen,
                redirect=screen.redirect,
                status_code=_record_status(screen),
            )
        finally:
            screen.unmount()

    return app


__all__ = ["create_app"]
