"""Dashboard router — overview and the signed-in user's check-in toggle."""

from datetime import date

from fastapi import APIRouter, Depends, Query

from workdesk.attendance.schemas import CheckInResponse
from workdesk.auth.dependencies import get_workspace
from workdesk.dashboard.schemas import DashboardResponse
from workdesk.workspace import Workspace

router = APIRouter(prefix="", tags=["dashboard"])


@router.get("", response_model=DashboardResponse)
async def overview(
    refresh: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
):
    return await workspace.dashboard.overview(refresh=refresh)


@router.post("/check-in", response_model=CheckInResponse)
async def check_in_out(workspace: Workspace = Depends(get_workspace)):
    return await workspace.attendance.check_in_out(workspace.user.id, date.today())
