"""Attendance Pydantic v2 schemas — marks, the month grid, toggle requests."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, Field

from workdesk.common.schemas import Record
from workdesk.sync.entity import EntitySpec


# ═════════════════════════════════════════════════════════════════════
# Entity
# ═════════════════════════════════════════════════════════════════════


class AttendanceMark(Record):
    """Presence of one profile on one day; keyed by ``(profile_id, date)``."""

    profile_id: uuid.UUID
    date: dt.date
    present: bool = False


ATTENDANCE: EntitySpec[AttendanceMark] = EntitySpec(
    "attendance", "attendance", AttendanceMark, key_fields=("profile_id", "date"),
)


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


class ToggleCellRequest(BaseModel):
    profile_id: uuid.UUID
    day: int = Field(..., ge=1, le=31)


class ToggleColumnRequest(BaseModel):
    day: int = Field(..., ge=1, le=31)


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class AttendanceRow(BaseModel):
    """One grid row: a profile and its presence per day of the month."""

    profile_id: uuid.UUID
    name: str
    days: dict[int, bool]
    present_days: int


class AttendanceGrid(BaseModel):
    year: int
    month: int
    days: list[int]
    ascending: bool
    rows: list[AttendanceRow]
    columns_all_present: dict[int, bool]


class ColumnToggleResponse(BaseModel):
    day: int
    present: bool
    rows: int


class CheckInResponse(BaseModel):
    date: dt.date
    checked_in: bool
    mark: Optional[AttendanceMark] = None
