"""Screen state machines for the user directory interface.

Each screen owns a single :class:`ScreenState` value and talks to the API
exclusively through :class:`~userdir.client.UserDirectoryClient`. Failures are
reduced to a fixed message per action; the underlying error is only logged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, List, Optional

from .client import NetworkError, UserDirectoryClient
from .models import UserRecord

logger = logging.getLogger("userdir.screens")

FETCH_FAILED = "ユーザーの取得に失敗しました"
ADD_FAILED = "ユーザーの追加に失敗しました"
UPDATE_FAILED = "ユーザーの更新に失敗しました"
DELETE_FAILED = "ユーザーの削除に失敗しました"
REQUIRED_FIELDS = "名前とメールアドレスは必須です"
USER_ADDED = "ユーザーが正常に追加されました！"
USER_UPDATED = "ユーザーが正常に更新されました！"
USER_DELETED = "ユーザーを削除しました"
CONFIRM_DELETE = "このユーザーを削除しますか？"

LIST_PATH = "/"
ADD_PATH = "/users/add"

ADD_REDIRECT_DELAY = 3.0
UPDATE_REDIRECT_DELAY = 3.0
DELETE_REDIRECT_DELAY = 2.0

Navigate = Callable[[str], None]
Confirm = Callable[[str], bool]


def detail_path(user_id: str) -> str:
    return f"/users/{user_id}"


def edit_path(user_id: str) -> str:
    return f"/users/{user_id}/edit"


class ScreenStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ScreenState:
    """Current status of a screen plus the data it last fetched."""

    status: ScreenStatus = ScreenStatus.IDLE
    payload: Any = None
    message: Optional[str] = None

    def loading(self) -> "ScreenState":
        return replace(self, status=ScreenStatus.LOADING, message=None)

    def failed(self, message: str) -> "ScreenState":
        # The previous payload stays visible.
        return replace(self, status=ScreenStatus.ERROR, message=message)

    def succeeded(self, payload: Any, message: Optional[str] = None) -> "ScreenState":
        return ScreenState(status=ScreenStatus.SUCCESS, payload=payload, message=message)


@dataclass
class UserForm:
    name: str = ""
    email: str = ""

    def cleaned(self) -> tuple[str, str]:
        return self.name.strip(), self.email.strip()

    @property
    def is_complete(self) -> bool:
        name, email = self.cleaned()
        return bool(name and email)


@dataclass
class ScheduledRedirect:
    """A navigation that fires ``delay`` seconds after a successful action."""

    target: str
    delay: float
    _handle: Optional[asyncio.TimerHandle] = field(default=None, init=False, repr=False)
    _cancelled: bool = field(default=False, init=False, repr=False)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def armed(self) -> bool:
        return self._handle is not None and not self._cancelled

    def arm(self, navigate: Navigate) -> None:
        """Schedule ``navigate(target)`` on the running event loop."""

        if self._cancelled:
            raise RuntimeError("Cannot arm a cancelled redirect")
        if self._handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, navigate, self.target)

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class Screen:
    """Shared lifecycle for all screens."""

    def __init__(self, client: UserDirectoryClient, *, navigate: Optional[Navigate] = None) -> None:
        self._client = client
        self._navigate = navigate
        self._mounted = False
        self.state = ScreenState()
        self.redirect: Optional[ScheduledRedirect] = None

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def is_loading(self) -> bool:
        return self.state.status is ScreenStatus.LOADING

    async def mount(self) -> None:
        self._mounted = True

    def unmount(self) -> None:
        self._mounted = False
        self._cancel_redirect()

    def _schedule_redirect(self, target: str, delay: float) -> ScheduledRedirect:
        self._cancel_redirect()
        redirect = ScheduledRedirect(target=target, delay=delay)
        if self._navigate is not None and self._mounted:
            redirect.arm(self._navigate)
        self.redirect = redirect
        return redirect

    def _cancel_redirect(self) -> None:
        if self.redirect is not None:
            self.redirect.cancel()
            self.redirect = None


class ListScreen(Screen):
    """All users plus the inline creation form."""

    def __init__(self, client: UserDirectoryClient, *, navigate: Optional[Navigate] = None) -> None:
        super().__init__(client, navigate=navigate)
        self.form = UserForm()

    @property
    def users(self) -> List[UserRecord]:
        return list(self.state.payload or [])

    @property
    def total(self) -> int:
        return len(self.users)

    @property
    def is_empty(self) -> bool:
        return self.state.status is ScreenStatus.SUCCESS and not self.users

    async def mount(self) -> None:
        await super().mount()
        await self.refresh()

    async def refresh(self, *, notice: Optional[str] = None) -> None:
        self.state = self.state.loading()
        try:
            users = await self._client.list_users()
        except NetworkError as exc:
            logger.warning("Error fetching users: %s", exc)
            self.state = self.state.failed(FETCH_FAILED)
            return
        self.state = self.state.succeeded(users, notice)

    async def submit(self, name: Optional[str], email: Optional[str]) -> bool:
        self.form = UserForm(name or "", email or "")
        if not self.form.is_complete:
            self.state = self.state.failed(REQUIRED_FIELDS)
            return False

        cleaned_name, cleaned_email = self.form.cleaned()
        self.state = self.state.loading()
        try:
            await self._client.create_user(cleaned_name, cleaned_email)
        except NetworkError as exc:
            logger.warning("Error adding user: %s", exc)
            self.state = self.state.failed(ADD_FAILED)
            return False

        self.form = UserForm()
        await self.refresh(notice=USER_ADDED)
        return True

    async def delete(self, user_id: str, confirm: Confirm) -> bool:
        if not confirm(CONFIRM_DELETE):
            return False

        self.state = self.state.loading()
        try:
            await self._client.delete_user(user_id)
        except NetworkError as exc:
            logger.warning("Error deleting user %s: %s", user_id, exc)
            self.state = self.state.failed(DELETE_FAILED)
            return False

        await self.refresh(notice=USER_DELETED)
        return True


class _RecordScreen(Screen):
    """Base for screens bound to a single user id from the route."""

    def __init__(
        self,
        client: UserDirectoryClient,
        user_id: str,
        *,
        navigate: Optional[Navigate] = None,
    ) -> None:
        super().__init__(client, navigate=navigate)
        self.user_id = user_id

    @property
    def user(self) -> Optional[UserRecord]:
        return self.state.payload

    @property
    def not_found(self) -> bool:
        return self.state.status is ScreenStatus.SUCCESS and self.state.payload is None

    async def mount(self) -> None:
        await super().mount()
        await self.fetch()

    async def navigate_to(self, user_id: str) -> None:
        """Follow a route change to another user id."""

        if user_id == self.user_id:
            return
        self._cancel_redirect()
        self.user_id = user_id
        self.state = ScreenState()
        await self.fetch()

    async def fetch(self) -> None:
        self.state = self.state.loading()
        try:
            users = await self._client.list_users(self.user_id)
        except NetworkError as exc:
            logger.warning("Error fetching user %s: %s", self.user_id, exc)
            self.state = self.state.failed(FETCH_FAILED)
            return
        self._loaded(users[0] if users else None)

    def _loaded(self, user: Optional[UserRecord]) -> None:
        self.state = self.state.succeeded(user)


class DetailScreen(_RecordScreen):
    """Read-only view of one user with a delete action."""

    async def delete(self, confirm: Confirm) -> bool:
        if self.user is None or not confirm(CONFIRM_DELETE):
            return False

        self.state = self.state.loading()
        try:
            await self._client.delete_user(self.user_id)
        except NetworkError as exc:
            logger.warning("Error deleting user %s: %s", self.user_id, exc)
            self.state = self.state.failed(DELETE_FAILED)
            return False

        self.state = self.state.succeeded(self.state.payload, USER_DELETED)
        self._schedule_redirect(LIST_PATH, DELETE_REDIRECT_DELAY)
        return True


class EditScreen(_RecordScreen):
    """Edit form pre-filled with the fetched record."""

    def __init__(
        self,
        client: UserDirectoryClient,
        user_id: str,
        *,
        navigate: Optional[Navigate] = None,
    ) -> None:
        super().__init__(client, user_id, navigate=navigate)
        self.form = UserForm()

    def _loaded(self, user: Optional[UserRecord]) -> None:
        super()._loaded(user)
        if user is not None:
            self.form = UserForm(user.name, user.email)

    def edit(self, *, name: Optional[str] = None, email: Optional[str] = None) -> None:
        if name is not None:
            self.form.name = name
        if email is not None:
            self.form.email = email

    @property
    def is_dirty(self) -> bool:
        user = self.user
        if user is None:
            return False
        return self.form.name != user.name or self.form.email != user.email

    @property
    def can_submit(self) -> bool:
        return not self.is_loading and self.is_dirty

    async def submit(self) -> bool:
        if not self.can_submit:
            return False
        if not self.form.is_complete:
            self.state = self.state.failed(REQUIRED_FIELDS)
            return False

        current = self.user
        cleaned_name, cleaned_email = self.form.cleaned()
        self.state = self.state.loading()
        try:
            updated = await self._client.update_user(self.user_id, cleaned_name, cleaned_email)
        except NetworkError as exc:
            logger.warning("Error updating user %s: %s", self.user_id, exc)
            self.state = self.state.failed(UPDATE_FAILED)
            return False

        record = updated[0] if updated else current
        self.state = self.state.succeeded(record, USER_UPDATED)
        if record is not None:
            self.form = UserForm(record.name, record.email)
        self._schedule_redirect(detail_path(self.user_id), UPDATE_REDIRECT_DELAY)
        return True


class AddScreen(Screen):
    """Standalone creation form."""

    def __init__(self, client: UserDirectoryClient, *, navigate: Optional[Navigate] = None) -> None:
        super().__init__(client, navigate=navigate)
        self.form = UserForm()

    async def submit(self, name: Optional[str], email: Optional[str]) -> bool:
        self.form = UserForm(name or "", email or "")
        if not self.form.is_complete:
            self.state = self.state.failed(REQUIRED_FIELDS)
            return False

        cleaned_name, cleaned_email = self.form.cleaned()
        self.state = self.state.loading()
        try:
            created = await self._client.create_user(cleaned_name, cleaned_email)
        except NetworkError as exc:
            logger.warning("Error adding user: %s", exc)
            self.state = self.state.failed(ADD_FAILED)
            return False

        self.form = UserForm()
        self.state = self.state.succeeded(created, USER_ADDED)
        self._schedule_redirect(LIST_PATH, ADD_REDIRECT_DELAY)
        return True


__all__ = [
    "AddScreen",
    "DetailScreen",
    "EditScreen",
    "ListScreen",
    "ScheduledRedirect",
    "Screen",
    "ScreenState",
    "ScreenStatus",
    "UserForm",
    "detail_path",
    "edit_path",
]
