"""Employees router — directory, onboarding, updates and bulk import.

Reads are open to every signed-in user; writes are admin only.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from workdesk.auth.dependencies import get_workspace, require_admin
from workdesk.common.exceptions import ValidationException
from workdesk.common.importer import read_rows
from workdesk.common.schemas import ImportResponse
from workdesk.employees.schemas import (
    AvailableProfile,
    Employee,
    EmployeeCreate,
    EmployeeDirectoryResponse,
    EmployeeUpdate,
)
from workdesk.workspace import Workspace

router = APIRouter(prefix="", tags=["employees"])

MAX_IMPORT_BYTES = 5 * 1024 * 1024


@router.get("", response_model=EmployeeDirectoryResponse)
async def list_employees(
    q: Optional[str] = Query(None, description="Search name, email and department"),
    refresh: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
):
    return await workspace.employees.directory(q, refresh=refresh)


@router.get("/available-profiles", response_model=list[AvailableProfile])
async def list_available_profiles(
    refresh: bool = Query(False),
    workspace: Workspace = Depends(require_admin),
):
    """Profiles not yet onboarded as employees."""
    return await workspace.employees.available_profiles(refresh=refresh)


@router.post("", response_model=Employee, status_code=201)
async def add_employee(
    body: EmployeeCreate,
    workspace: Workspace = Depends(require_admin),
):
    return await workspace.employees.add(body)


@router.patch("/{employee_id}", response_model=Employee)
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    workspace: Workspace = Depends(require_admin),
):
    return await workspace.employees.update(employee_id, body)


@router.post("/import", response_model=ImportResponse)
async def import_employees(
    file: UploadFile = File(...),
    workspace: Workspace = Depends(require_admin),
):
    """Import ``.csv`` / ``.xlsx`` rows (email, designation, department, phone, joining_date)."""
    contents = await file.read()
    if len(contents) > MAX_IMPORT_BYTES:
        raise ValidationException({"file": ["File too large. Maximum size is 5 MB."]})
    rows = read_rows(file.filename or "", contents, workspace.notifier)
    return ImportResponse(imported=await workspace.employees.import_rows(rows))
