"""Dashboard Pydantic schemas."""

from pydantic import BaseModel

from workdesk.notices.schemas import NoticeOut
from workdesk.tasks.schemas import TaskOut


class DashboardStats(BaseModel):
    total_employees: int
    active_tasks: int
    pending_leaves: int


class DashboardResponse(BaseModel):
    """Everything the dashboard page shows in one payload."""

    stats: DashboardStats
    recent_tasks: list[TaskOut]
    recent_notices: list[NoticeOut]
    task_distribution: dict[str, int]
    workload: dict[str, int]
    checked_in: bool
