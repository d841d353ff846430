"""Leave router — list, apply, approve / reject (admin), delete, import, export.

All endpoints require authentication. Decision and import endpoints are admin only.
"""

import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile

from workdesk.auth.dependencies import get_workspace, require_admin
from workdesk.common.exceptions import ValidationException
from workdesk.common.export import csv_response
from workdesk.common.importer import read_rows
from workdesk.common.schemas import ImportResponse
from workdesk.leave.schemas import (
    LeaveApplyRequest,
    LeaveListResponse,
    LeaveRequest,
)
from workdesk.workspace import Workspace

router = APIRouter(prefix="", tags=["leave"])

MAX_IMPORT_BYTES = 5 * 1024 * 1024


@router.get("", response_model=LeaveListResponse)
async def list_leaves(
    refresh: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
):
    """Every request for admins; the caller's own requests otherwise."""
    return await workspace.leave.listing(refresh=refresh)


@router.post("", response_model=LeaveRequest, status_code=201)
async def apply_leave(
    body: LeaveApplyRequest,
    workspace: Workspace = Depends(get_workspace),
):
    return await workspace.leave.apply(body)


@router.post("/{leave_id}/approve", response_model=LeaveRequest)
async def approve_leave(
    leave_id: uuid.UUID,
    workspace: Workspace = Depends(require_admin),
):
    return await workspace.leave.approve(leave_id)


@router.post("/{leave_id}/reject", response_model=LeaveRequest)
async def reject_leave(
    leave_id: uuid.UUID,
    workspace: Workspace = Depends(require_admin),
):
    return await workspace.leave.reject(leave_id)


@router.delete("/{leave_id}", status_code=204)
async def delete_leave(
    leave_id: uuid.UUID,
    workspace: Workspace = Depends(get_workspace),
):
    await workspace.leave.delete(leave_id)


# ── Bulk import / export ────────────────────────────────────────────

@router.post("/import", response_model=ImportResponse)
async def import_leaves(
    file: UploadFile = File(...),
    workspace: Workspace = Depends(require_admin),
):
    """Import ``.csv`` / ``.xlsx`` rows (email, type, start_date, end_date, reason)."""
    contents = await file.read()
    if len(contents) > MAX_IMPORT_BYTES:
        raise ValidationException({"file": ["File too large. Maximum size is 5 MB."]})
    rows = read_rows(file.filename or "", contents, workspace.notifier)
    return ImportResponse(imported=await workspace.leave.import_rows(rows))


@router.get("/export")
async def export_leaves(workspace: Workspace = Depends(get_workspace)):
    return csv_response(await workspace.leave.export_csv())
