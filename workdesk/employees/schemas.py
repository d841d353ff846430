"""Employee Pydantic v2 schemas.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Out / *Response   → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from workdesk.common.constants import EmployeeStatus
from workdesk.common.schemas import Record
from workdesk.sync.entity import EntitySpec


# ── Entity ──────────────────────────────────────────────────────────

class Employee(Record):
    """Employment details of one profile; at most one per profile."""

    id: uuid.UUID
    profile_id: uuid.UUID
    designation: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    joining_date: Optional[date] = None
    status: EmployeeStatus = EmployeeStatus.active


EMPLOYEES: EntitySpec[Employee] = EntitySpec("employees", "employees", Employee)


# ── Requests ────────────────────────────────────────────────────────

class EmployeeCreate(BaseModel):
    profile_id: uuid.UUID
    designation: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    joining_date: Optional[date] = Field(None, description="Defaults to today.")
    status: EmployeeStatus = EmployeeStatus.active


class EmployeeUpdate(BaseModel):
    """Partial update: only the fields sent are changed."""

    designation: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    joining_date: Optional[date] = None
    status: Optional[EmployeeStatus] = None


# ── Responses ───────────────────────────────────────────────────────

class EmployeeOut(Employee):
    name: str
    email: str
    avatar_url: Optional[str] = None


class AvailableProfile(BaseModel):
    id: uuid.UUID
    name: str
    email: str


class EmployeeStats(BaseModel):
    total: int
    active: int
    joined_this_month: int


class EmployeeDirectoryResponse(BaseModel):
    query: Optional[str] = None
    stats: EmployeeStats
    data: list[EmployeeOut]
