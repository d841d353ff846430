"""Workspaces — the view state one signed-in user's pages keep between requests.

A workspace owns the user's synced collections, their change-feed
subscriptions and their toast log. It lives from the first authenticated
request until sign-out (or shutdown), when every subscription it opened is
released through its exit stack.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import ExitStack
from functools import cached_property
from typing import Any, Callable, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from workdesk.account.service import AccountService
from workdesk.attendance.service import AttendanceBoard
from workdesk.auth.schemas import PROFILES, Profile
from workdesk.auth.service import AuthService
from workdesk.config import settings
from workdesk.dashboard.service import DashboardService
from workdesk.employees.service import EmployeeDirectory
from workdesk.leave.service import LeaveBoard
from workdesk.notices.service import NoticeBoard
from workdesk.notifications.service import Notifier
from workdesk.search.service import SearchService
from workdesk.store.rest_client import RestCollectionClient
from workdesk.store.sql_client import SqlCollectionClient
from workdesk.store.storage import StorageClient
from workdesk.sync.collection import SyncedCollection
from workdesk.sync.entity import EntitySpec
from workdesk.sync.feed import ChangeFeed, Subscription
from workdesk.sync.remote import Query, RemoteCollection
from workdesk.tasks.service import TaskBoard

logger = logging.getLogger(__name__)

RemoteFactory = Callable[[Optional[str]], RemoteCollection]

PROFILE_WINDOW = Query().order_by("name")


class Workspace:
    """Per-user hub the page services hang off."""

    def __init__(
        self,
        user: Profile,
        token: Optional[str],
        remote: RemoteCollection,
        feed: ChangeFeed,
        storage: StorageClient,
        *,
        backlog: int = 100,
        load_timeout: Optional[float] = None,
    ) -> None:
        self.user = user
        self.token = token
        self.remote = remote
        self.feed = feed
        self.storage = storage
        self.notifier = Notifier(backlog)
        self.load_timeout = load_timeout
        self._subscriptions = ExitStack()
        self.closed = False
        self.profiles: SyncedCollection[Profile] = self.collection(PROFILES)
        self.hold(self.notices.watch())

    # ── Collections & subscriptions ─────────────────────────────────

    def collection(self, spec: EntitySpec[Any], *, live: bool = True) -> SyncedCollection[Any]:
        """A synced collection for *spec*, kept live by the change feed unless ``live=False``."""
        synced = SyncedCollection(
            spec, self.remote, self.feed, self.notifier, load_timeout=self.load_timeout,
        )
        if live:
            self.hold(synced.listen())
        return synced

    def hold(self, subscription: Subscription) -> Subscription:
        """Tie *subscription* to this workspace's lifetime."""
        return self._subscriptions.enter_context(subscription)

    async def load_profiles(self, *, refresh: bool = False) -> list[Profile]:
        return await self.profiles.ensure(PROFILE_WINDOW, refresh=refresh)

    async def profile_names(self) -> dict[uuid.UUID, str]:
        profiles = await self.load_profiles()
        return {p.id: p.display_name for p in profiles}

    async def profiles_by_email(self, *, refresh: bool = False) -> dict[str, Profile]:
        profiles = await self.load_profiles(refresh=refresh)
        return {p.email.casefold(): p for p in profiles}

    # ── Pages ───────────────────────────────────────────────────────

    @cached_property
    def attendance(self) -> AttendanceBoard:
        return AttendanceBoard(self)

    @cached_property
    def tasks(self) -> TaskBoard:
        return TaskBoard(self)

    @cached_property
    def notices(self) -> NoticeBoard:
        return NoticeBoard(self)

    @cached_property
    def leave(self) -> LeaveBoard:
        return LeaveBoard(self)

    @cached_property
    def employees(self) -> EmployeeDirectory:
        return EmployeeDirectory(self)

    @cached_property
    def dashboard(self) -> DashboardService:
        return DashboardService(self)

    @cached_property
    def search(self) -> SearchService:
        return SearchService(self)

    @cached_property
    def account(self) -> AccountService:
        return AccountService(self)

    # ── Teardown ────────────────────────────────────────────────────

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._subscriptions.close()
        logger.info("Closed workspace for %s", self.user.email)


class WorkspaceRegistry:
    """``user id → Workspace`` for every signed-in user of this process."""

    def __init__(
        self,
        remote_factory: RemoteFactory,
        feed: ChangeFeed,
        storage: StorageClient,
        *,
        backlog: Optional[int] = None,
        load_timeout: Optional[float] = None,
        profile_timeout: Optional[float] = None,
        http: Optional[httpx.AsyncClient] = None,
        owns_http: bool = False,
    ) -> None:
        self._remote_factory = remote_factory
        self.feed = feed
        self.storage = storage
        self.http = http
        self._owns_http = owns_http
        self._backlog = settings.NOTIFICATION_BACKLOG if backlog is None else backlog
        self._load_timeout = settings.LOAD_TIMEOUT_SECONDS if load_timeout is None else load_timeout
        self._profile_timeout = profile_timeout
        self._workspaces: dict[uuid.UUID, Workspace] = {}

    def __len__(self) -> int:
        return len(self._workspaces)

    def get(self, user_id: uuid.UUID) -> Optional[Workspace]:
        return self._workspaces.get(user_id)

    async def open(self, claims: dict[str, Any], token: Optional[str]) -> Workspace:
        """Return the caller's workspace, building it on first use or a new session."""
        user_id = uuid.UUID(str(claims["sub"]))
        existing = self._workspaces.get(user_id)
        if existing is not None and existing.token == token:
            return existing

        remote = self._remote_factory(token)
        profile = await AuthService.resolve_profile(
            remote, user_id, claims["email"], timeout=self._profile_timeout,
        )

        # Another request for the same session may have finished first.
        current = self._workspaces.get(user_id)
        if current is not None and current.token == token:
            return current
        if current is not None:
            self.release(user_id)

        workspace = Workspace(
            profile,
            token,
            remote,
            self.feed,
            self.storage,
            backlog=self._backlog,
            load_timeout=self._load_timeout,
        )
        self._workspaces[user_id] = workspace
        logger.info("Opened workspace for %s (%s)", profile.email, profile.role.value)
        return workspace

    def release(self, user_id: uuid.UUID) -> None:
        workspace = self._workspaces.pop(user_id, None)
        if workspace is not None:
            workspace.close()

    async def aclose(self) -> None:
        for user_id in list(self._workspaces):
            self.release(user_id)
        self.feed.close_all()
        await self.storage.aclose()
        if self.http is not None and self._owns_http:
            await self.http.aclose()


def build_registry(
    *,
    row_store: Optional[str] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    http: Optional[httpx.AsyncClient] = None,
    storage: Optional[StorageClient] = None,
    **options: Any,
) -> WorkspaceRegistry:
    """Wire the configured row store, change feed and storage into a registry."""
    row_store = row_store or settings.ROW_STORE
    if row_store not in ("sql", "rest"):
        raise ValueError(f"Unknown ROW_STORE {row_store!r}; expected 'sql' or 'rest'")

    feed = ChangeFeed()
    shared = http or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    if row_store == "rest":
        def remote_factory(token: Optional[str]) -> RemoteCollection:
            return RestCollectionClient(access_token=token, client=shared, feed=feed)
    else:
        if session_factory is None:
            from workdesk.database import async_session_factory as session_factory
        sql = SqlCollectionClient(session_factory, feed)

        def remote_factory(token: Optional[str]) -> RemoteCollection:
            return sql

    logger.info("Row store: %s", row_store)
    return WorkspaceRegistry(
        remote_factory,
        feed,
        storage or StorageClient(client=shared),
        http=shared,
        owns_http=http is None,
        **options,
    )
