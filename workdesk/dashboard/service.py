"""Dashboard — headline counts, recent activity, task charts and today's check-in.

Counts are read straight from the row store; lists and charts are derived
from the task and notice boards' cached snapshots, so the dashboard stays
live with them.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Optional

from workdesk.common.constants import (
    RECENT_NOTICES_LIMIT,
    RECENT_TASKS_LIMIT,
    WORKLOAD_TOP_K,
    LeaveStatus,
    TaskStatus,
)
from workdesk.common.exceptions import FetchError
from workdesk.dashboard.schemas import DashboardResponse, DashboardStats
from workdesk.employees.schemas import EMPLOYEES
from workdesk.leave.schemas import LEAVES
from workdesk.sync import aggregator
from workdesk.sync.entity import EntitySpec
from workdesk.sync.remote import Query, RemoteError
from workdesk.tasks.schemas import TASKS

if TYPE_CHECKING:
    from workdesk.workspace import Workspace

logger = logging.getLogger(__name__)

ACTIVE_TASKS = Query().neq("status", TaskStatus.completed.value)
PENDING_LEAVES = Query().eq("status", LeaveStatus.pending.value)


class DashboardService:
    """Dashboard page view model for one workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    async def _count(self, spec: EntitySpec, query: Query = Query()) -> int:
        try:
            return await self.workspace.remote.count(spec.table, query)
        except RemoteError as exc:
            error = FetchError(spec.name, exc.message)
            self.workspace.notifier.push(error.title, error.message, variant="destructive")
            raise error from exc

    async def stats(self) -> DashboardStats:
        return DashboardStats(
            total_employees=await self._count(EMPLOYEES),
            active_tasks=await self._count(TASKS, ACTIVE_TASKS),
            pending_leaves=await self._count(LEAVES, PENDING_LEAVES),
        )

    async def overview(
        self,
        *,
        refresh: bool = False,
        today: Optional[date] = None,
    ) -> DashboardResponse:
        today = today or date.today()
        stats = await self.stats()

        tasks = await self.workspace.tasks.load(refresh=refresh)
        notices = await self.workspace.notices.load(refresh=refresh)
        # The notice board pins first; the dashboard wants plain recency.
        newest = sorted(notices, key=lambda n: n.created_at, reverse=True)

        return DashboardResponse(
            stats=stats,
            recent_tasks=await self.workspace.tasks.present(tasks[:RECENT_TASKS_LIMIT]),
            recent_notices=await self.workspace.notices.present(newest[:RECENT_NOTICES_LIMIT]),
            task_distribution=aggregator.count_by_status(tasks),
            workload=aggregator.top_by_assignee(
                tasks, await self.workspace.profile_names(), limit=WORKLOAD_TOP_K,
            ),
            checked_in=await self.workspace.attendance.checked_in(self.workspace.user.id, today),
        )
