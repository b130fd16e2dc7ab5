"""FastAPI application exposing the ``/users`` resource."""
from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from typing import Callable, Dict, List, Optional, TypeVar

import anyio
from fastapi import FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import load_store_settings
from .models import UserRecord
from .store import (
    RecordNotFoundError,
    RecordStore,
    StoreError,
    ValidationError,
    build_record_store,
)

logger = logging.getLogger("userdir.api")

SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")

T = TypeVar("T")


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    created_at: datetime


class CreateUserRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class UpdateUserRequest(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        # Hosted tables may use integer keys.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class DeleteUserResponse(BaseModel):
    message: str


def user_to_response(user: UserRecord) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        created_at=user.created_at,
    )


def _error(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def create_app(
    *,
    store: RecordStore | None = None,
    initialize_store: bool = False,
) -> FastAPI:
    """Create the API application around a record store."""

    if store is None:
        store = build_record_store(load_store_settings())
        initialize_store = True
    if initialize_store:
        store.initialize()

    app = FastAPI(
        title="User Directory API",
        description="CRUD access to the users table",
        version="1.0.0",
    )
    app.state.store = store

    async def _call_store(operation: str, func: Callable[..., T], *args: object, **kwargs: object) -> T:
        try:
            return await anyio.to_thread.run_sync(partial(func, *args, **kwargs))
        except ValidationError as exc:
            logger.info("Rejected %s request: %s", operation, exc)
            raise
        except StoreError as exc:
            logger.error("Record store %s failed (args=%s, fields=%s): %s", operation, args, sorted(kwargs), exc)
            raise

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok", "store": store.backend}

    @app.get("/users", response_model=List[UserResponse])
    async def list_users(user_id: Optional[str] = Query(default=None, alias="id")) -> List[UserResponse]:
        cleaned = user_id.strip() if user_id is not None else None
        users = await _call_store("list", store.list_users, cleaned or None)
        return [user_to_response(user) for user in users]

    @app.post("/users", response_model=List[UserResponse], status_code=status.HTTP_201_CREATED)
    async def create_user(payload: CreateUserRequest) -> List[UserResponse]:
        created = await _call_store("create", store.create_user, payload.name, payload.email)
        for user in created:
            logger.info("Created user %s", user.id)
        return [user_to_response(user) for user in created]

    @app.put("/users", response_model=List[UserResponse])
    async def update_user(payload: UpdateUserRequest) -> List[UserResponse]:
        updated = await _call_store(
            "update",
            store.update_user,
            payload.id,
            name=payload.name,
            email=payload.email,
        )
        logger.info("Updated user %s", payload.id)
        return [user_to_response(user) for user in updated]

    @app.delete("/users", response_model=DeleteUserResponse)
    async def delete_user(user_id: Optional[str] = Query(default=None, alias="id")) -> DeleteUserResponse:
        await _call_store("delete", store.delete_user, user_id)
        logger.info("Deleted user %s", user_id)
        return DeleteUserResponse(message="User deleted successfully")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            headers = dict(exc.headers or {})
            if request.url.path.rstrip("/").endswith("/users"):
                headers["Allow"] = ", ".join(SUPPORTED_METHODS)
            return _error(exc.status_code, f"Method {request.method} Not Allowed", headers=headers)
        return _error(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(ValidationError)
    async def handle_validation_error(_: Request, exc: ValidationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Malformed request body: %s", exc.errors())
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid request body")

    @app.exception_handler(RecordNotFoundError)
    async def handle_not_found(_: Request, exc: RecordNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "User not found")

    @app.exception_handler(StoreError)
    async def handle_store_error(_: Request, exc: StoreError) -> JSONResponse:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected error while handling request", exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    return app


__all__ = ["SUPPORTED_METHODS", "UserResponse", "create_app", "user_to_response"]
