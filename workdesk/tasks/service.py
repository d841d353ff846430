"""Task board — newest-first task list with status tabs, search and optimistic edits."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from workdesk.common.constants import UNASSIGNED, TaskStatus
from workdesk.common.exceptions import ValidationException
from workdesk.sync import aggregator
from workdesk.sync.remote import Query
from workdesk.tasks.schemas import (
    TASKS,
    Task,
    TaskBoardResponse,
    TaskCreate,
    TaskOut,
    TaskUpdate,
)

if TYPE_CHECKING:
    from workdesk.workspace import Workspace

logger = logging.getLogger(__name__)

TASK_WINDOW = Query().order_by("created_at", ascending=False)

# Tab order as shown on the page.
TASK_TABS = (TaskStatus.pending, TaskStatus.in_progress, TaskStatus.completed)
SEARCH_FIELDS = ("title", "description")


class TaskBoard:
    """Tasks page view model for one workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.tasks = workspace.collection(TASKS)

    async def load(self, *, refresh: bool = False) -> list[Task]:
        return await self.tasks.ensure(TASK_WINDOW, refresh=refresh)

    async def by_status(
        self,
        tab: str = "all",
        query: Optional[str] = None,
        *,
        refresh: bool = False,
    ) -> TaskBoardResponse:
        """Search-filtered tasks bucketed into the all / status tabs."""
        tasks = aggregator.search(await self.load(refresh=refresh), query, SEARCH_FIELDS)
        tabs = aggregator.partition_by(tasks, "status", TASK_TABS)
        if tab not in tabs:
            raise ValidationException({"tab": [f"Unknown tab '{tab}'. Use one of: {', '.join(tabs)}."]})
        return TaskBoardResponse(
            tab=tab,
            query=query,
            counts={name: len(items) for name, items in tabs.items()},
            data=await self.present(tabs[tab]),
        )

    async def present(self, tasks: list[Task]) -> list[TaskOut]:
        names = await self.workspace.profile_names()
        return [
            TaskOut(
                **t.model_dump(),
                assignee_name=names.get(t.assignee_id, UNASSIGNED) if t.assignee_id else UNASSIGNED,
            )
            for t in tasks
        ]

    # ── Mutations ───────────────────────────────────────────────────

    async def create(self, body: TaskCreate) -> Task:
        await self.load()
        task = Task(
            id=uuid.uuid4(),
            created_at=datetime.now(timezone.utc),
            **body.model_dump(exclude={"assignee_id"}),
            assignee_id=body.assignee_id or self.workspace.user.id,
        )
        await self.tasks.create(task, title="Creation failed")
        self.workspace.notifier.push("Task created", "New task has been added successfully.")
        return task

    async def edit(self, task_id: uuid.UUID, body: TaskUpdate) -> Task:
        await self.load()
        fields = body.model_dump(exclude_unset=True)
        if "title" in fields and not fields["title"]:
            raise ValidationException({"title": ["Title is required."]})
        if not fields:
            raise ValidationException({"body": ["Nothing to update."]})
        task = await self.tasks.update(task_id, fields)
        self.workspace.notifier.push("Task updated", "Task changes have been saved.")
        return task

    async def change_status(self, task_id: uuid.UUID, status: TaskStatus) -> Task:
        await self.load()
        task = await self.tasks.update(task_id, {"status": status})
        self.workspace.notifier.push("Task updated", "Task status has been changed.")
        return task

    async def delete(self, task_id: uuid.UUID) -> Task:
        await self.load()
        task = await self.tasks.delete(task_id)
        self.workspace.notifier.push("Task deleted", "Task has been removed.")
        return task
