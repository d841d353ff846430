"""Leave Pydantic v2 schemas.

Naming conventions:
  - *Request           → request bodies (write)
  - *Out / *Response   → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from workdesk.common.constants import LeaveStatus
from workdesk.common.schemas import Record
from workdesk.sync.entity import EntitySpec


def duration_days(start: date, end: date) -> int:
    """Inclusive day count, never less than one."""
    return max(1, (end - start).days + 1)


# ═════════════════════════════════════════════════════════════════════
# Entity
# ═════════════════════════════════════════════════════════════════════


class LeaveRequest(Record):
    id: uuid.UUID
    profile_id: uuid.UUID
    leave_type: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    duration_days: int = Field(1, ge=1)
    reason: str = "N/A"
    status: LeaveStatus = LeaveStatus.pending
    created_at: datetime


LEAVES: EntitySpec[LeaveRequest] = EntitySpec("leave requests", "leaves", LeaveRequest)


# ═════════════════════════════════════════════════════════════════════
# Requests / responses
# ═════════════════════════════════════════════════════════════════════


class LeaveApplyRequest(BaseModel):
    """Payload for applying for leave; start, end and type are required."""

    start_date: date
    end_date: date
    leave_type: str = Field(..., min_length=1, max_length=50)
    reason: Optional[str] = None


class LeaveOut(LeaveRequest):
    name: str


class LeaveListResponse(BaseModel):
    data: list[LeaveOut]
    pending: int
