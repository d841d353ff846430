"""Notice board — pinned-first notices with type tabs, admin posting, live announcements."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from workdesk.common.constants import ChangeKind, NoticeType
from workdesk.common.exceptions import ForbiddenException, ValidationException
from workdesk.notices.schemas import (
    NOTICES,
    Notice,
    NoticeBoardResponse,
    NoticeCreate,
    NoticeOut,
)
from workdesk.sync import aggregator
from workdesk.sync.feed import Subscription
from workdesk.sync.remote import ChangeEvent, Query

if TYPE_CHECKING:
    from workdesk.workspace import Workspace

logger = logging.getLogger(__name__)

NOTICE_WINDOW = (
    Query()
    .order_by("is_pinned", ascending=False)
    .order_by("created_at", ascending=False)
)
NOTICE_TABS = tuple(NoticeType)
SEARCH_FIELDS = ("title", "content")
DEFAULT_AUTHOR = "Admin"


class NoticeBoard:
    """Notices page view model for one workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.notices = workspace.collection(NOTICES)

    async def load(self, *, refresh: bool = False) -> list[Notice]:
        return await self.notices.ensure(NOTICE_WINDOW, refresh=refresh)

    async def by_type(
        self,
        tab: str = "all",
        query: Optional[str] = None,
        *,
        refresh: bool = False,
    ) -> NoticeBoardResponse:
        notices = aggregator.search(await self.load(refresh=refresh), query, SEARCH_FIELDS)
        tabs = aggregator.partition_by(notices, "type", NOTICE_TABS)
        if tab not in tabs:
            raise ValidationException({"tab": [f"Unknown tab '{tab}'. Use one of: {', '.join(tabs)}."]})
        selected = await self.present(tabs[tab])
        return NoticeBoardResponse(
            tab=tab,
            query=query,
            counts={name: len(items) for name, items in tabs.items()},
            pinned=[n for n in selected if n.is_pinned],
            regular=[n for n in selected if not n.is_pinned],
        )

    async def present(self, notices: list[Notice]) -> list[NoticeOut]:
        names = await self.workspace.profile_names()
        return [
            NoticeOut(**n.model_dump(), author_name=names.get(n.author_id) or DEFAULT_AUTHOR)
            for n in notices
        ]

    # ── Mutations (admin only) ──────────────────────────────────────

    def _require_admin(self) -> None:
        if not self.workspace.user.is_admin:
            raise ForbiddenException("Only admins can post or remove notices.")

    async def post(self, body: NoticeCreate) -> Notice:
        self._require_admin()
        await self.load()
        notice = Notice(
            id=uuid.uuid4(),
            author_id=self.workspace.user.id,
            created_at=datetime.now(timezone.utc),
            **body.model_dump(),
        )
        await self.notices.create(notice, title="Post failed")
        self.workspace.notifier.push(
            "Notice posted", "Your notice has been published successfully.",
        )
        return notice

    async def delete(self, notice_id: uuid.UUID) -> Notice:
        self._require_admin()
        await self.load()
        notice = await self.notices.delete(notice_id)
        self.workspace.notifier.push("Notice deleted", "The notice has been removed.")
        return notice

    # ── Live announcements ──────────────────────────────────────────

    def watch(self) -> Subscription:
        """Announce every newly inserted notice to this workspace's user."""
        return self.workspace.feed.subscribe(
            NOTICES.table, self._announce, kinds=(ChangeKind.insert,),
        )

    def _announce(self, event: ChangeEvent) -> None:
        title = event.new.get("title")
        if not title:
            logger.warning("Notice insert without a title: %r", event.new.get("id"))
            return
        self.workspace.notifier.push("New Notice Posted", str(title))
