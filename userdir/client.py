"""HTTP client the screens use to reach the user directory API."""

from __future__ import annotations

from typing import List, Optional

import httpx

from .models import UserRecord


class NetworkError(RuntimeError):
    """Raised when a request to the API could not be completed."""


class ResponseError(NetworkError):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return default


class UserDirectoryClient:
    """Issue list/create/update/delete requests against ``/users``."""

    def __init__(
        self,
        base_url: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._transport = transport
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _request(
        self,
        method: str,
        *,
        params: Optional[dict] = None,
        json: object = None,
    ) -> object:
        url = f"{self._base_url}/users"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.request(method, url, params=params, json=json)
        except httpx.RequestError as exc:
            raise NetworkError(f"Failed to contact user directory API: {exc}") from exc

        if response.status_code >= 400:
            try:
                parsed = response.json()
            except ValueError:
                parsed = None
            message = _extract_error_message(
                parsed,
                f"User directory API request failed with status {response.status_code}",
            )
            raise ResponseError(response.status_code, message)

        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError("User directory API returned an invalid response") from exc

    @staticmethod
    def _records(payload: object) -> List[UserRecord]:
        if not isinstance(payload, list):
            raise NetworkError("User directory API returned an unexpected response payload")
        try:
            return [UserRecord.from_row(row) for row in payload]
        except (KeyError, TypeError, ValueError) as exc:
            raise NetworkError("User directory API response was missing required fields") from exc

    async def list_users(self, user_id: Optional[str] = None) -> List[UserRecord]:
        params = {"id": user_id} if user_id is not None else None
        return self._records(await self._request("GET", params=params))

    async def create_user(self, name: str, email: str) -> List[UserRecord]:
        payload = await self._request("POST", json={"name": name, "email": email})
        return self._records(payload)

    async def update_user(self, user_id: str, name: str, email: str) -> List[UserRecord]:
        payload = await self._request("PUT", json={"id": user_id, "name": name, "email": email})
        return self._records(payload)

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", params={"id": user_id})


__all__ = ["NetworkError", "ResponseError", "UserDirectoryClient"]
