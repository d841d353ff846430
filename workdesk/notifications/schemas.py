"""Notification Pydantic schemas — the toast log shown to the signed-in user."""


import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

ToastVariant = Literal["default", "destructive"]


# ── Responses ───────────────────────────────────────────────────────

class Toast(BaseModel):
    """One non-blocking, user-visible notification."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    title: str
    description: str = ""
    variant: ToastVariant = "default"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ToastListResponse(BaseModel):
    data: list[Toast]
    unread: int
