"""Tasks router — list by tab, create, edit, change status, delete.

All endpoints require authentication.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from workdesk.auth.dependencies import get_workspace
from workdesk.tasks.schemas import (
    Task,
    TaskBoardResponse,
    TaskCreate,
    TaskStatusUpdate,
    TaskUpdate,
)
from workdesk.workspace import Workspace

router = APIRouter(prefix="", tags=["tasks"])


@router.get("", response_model=TaskBoardResponse)
async def list_tasks(
    tab: str = Query("all"),
    q: Optional[str] = Query(None, description="Search title and description"),
    refresh: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
):
    return await workspace.tasks.by_status(tab, q, refresh=refresh)


@router.post("", response_model=Task, status_code=201)
async def create_task(
    body: TaskCreate,
    workspace: Workspace = Depends(get_workspace),
):
    return await workspace.tasks.create(body)


@router.patch("/{task_id}", response_model=Task)
async def edit_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    workspace: Workspace = Depends(get_workspace),
):
    return await workspace.tasks.edit(task_id, body)


@router.patch("/{task_id}/status", response_model=Task)
async def change_status(
    task_id: uuid.UUID,
    body: TaskStatusUpdate,
    workspace: Workspace = Depends(get_workspace),
):
    return await workspace.tasks.change_status(task_id, body.status)


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: uuid.UUID,
    workspace: Workspace = Depends(get_workspace),
):
    await workspace.tasks.delete(task_id)
