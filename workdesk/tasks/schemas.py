"""Task Pydantic v2 schemas.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Out / *Response   → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from workdesk.common.constants import TaskPriority, TaskStatus
from workdesk.common.schemas import Record
from workdesk.sync.entity import EntitySpec


# ── Entity ──────────────────────────────────────────────────────────

class Task(Record):
    id: uuid.UUID
    title: str = Field(..., min_length=1)
    description: str = ""
    status: TaskStatus = TaskStatus.pending
    priority: TaskPriority = TaskPriority.medium
    assignee_id: Optional[uuid.UUID] = None
    due_date: Optional[date] = None
    created_at: datetime


TASKS: EntitySpec[Task] = EntitySpec("tasks", "tasks", Task)


# ── Requests ────────────────────────────────────────────────────────

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: str = ""
    priority: TaskPriority = TaskPriority.medium
    status: TaskStatus = TaskStatus.pending
    assignee_id: Optional[uuid.UUID] = Field(
        None, description="Defaults to the signed-in user.",
    )
    due_date: Optional[date] = None


class TaskUpdate(BaseModel):
    """Edit form: only the fields sent are changed."""

    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[uuid.UUID] = None
    due_date: Optional[date] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


# ── Responses ───────────────────────────────────────────────────────

class TaskOut(Task):
    assignee_name: str


class TaskBoardResponse(BaseModel):
    """Tasks of the selected tab plus the size of every tab."""

    tab: str
    query: Optional[str] = None
    counts: dict[str, int]
    data: list[TaskOut]
