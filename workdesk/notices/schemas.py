"""Notice Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from workdesk.common.constants import NoticeType
from workdesk.common.schemas import Record
from workdesk.sync.entity import EntitySpec


class Notice(Record):
    id: uuid.UUID
    title: str = Field(..., min_length=1)
    content: str
    type: NoticeType = NoticeType.announcement
    author_id: Optional[uuid.UUID] = None
    is_pinned: bool = False
    created_at: datetime


NOTICES: EntitySpec[Notice] = EntitySpec("notices", "notices", Notice)


class NoticeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    type: NoticeType = NoticeType.announcement
    is_pinned: bool = False


class NoticeOut(Notice):
    author_name: str


class NoticeBoardResponse(BaseModel):
    """Pinned and regular notices of the selected tab, plus every tab's size."""

    tab: str
    query: Optional[str] = None
    counts: dict[str, int]
    pinned: list[NoticeOut]
    regular: list[NoticeOut]
