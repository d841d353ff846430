"""Attendance router — month grid, cell / column toggles, check-in, CSV export.

All endpoints require authentication.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from workdesk.attendance.schemas import (
    AttendanceGrid,
    AttendanceMark,
    CheckInResponse,
    ColumnToggleResponse,
    ToggleCellRequest,
    ToggleColumnRequest,
)
from workdesk.auth.dependencies import get_workspace
from workdesk.common.export import csv_response
from workdesk.workspace import Workspace

router = APIRouter(prefix="", tags=["attendance"])


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=AttendanceGrid)
async def month_grid(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    ascending: Optional[bool] = Query(None),
    refresh: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
):
    """Attendance grid for a month (defaults to the current one)."""
    today = date.today()
    return await workspace.attendance.load(
        year or today.year,
        month or today.month,
        ascending=ascending,
        refresh=refresh,
    )


# ── POST /toggle ────────────────────────────────────────────────────

@router.post("/toggle", response_model=AttendanceMark)
async def toggle_cell(
    body: ToggleCellRequest,
    workspace: Workspace = Depends(get_workspace),
):
    """Flip one profile's mark for a day of the loaded month."""
    return await workspace.attendance.toggle_cell(body.profile_id, body.day)


# ── POST /toggle-column ─────────────────────────────────────────────

@router.post("/toggle-column", response_model=ColumnToggleResponse)
async def toggle_column(
    body: ToggleColumnRequest,
    workspace: Workspace = Depends(get_workspace),
):
    return await workspace.attendance.toggle_column(body.day)


# ── POST /check-in ──────────────────────────────────────────────────

@router.post("/check-in", response_model=CheckInResponse)
async def check_in_out(workspace: Workspace = Depends(get_workspace)):
    """Check the signed-in user in for today, or out if already in."""
    return await workspace.attendance.check_in_out(workspace.user.id, date.today())


# ── GET /export ─────────────────────────────────────────────────────

@router.get("/export")
async def export_csv(workspace: Workspace = Depends(get_workspace)):
    return csv_response(await workspace.attendance.export_csv())
