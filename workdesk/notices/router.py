"""Notices router — list by type tab, post and delete (admin only)."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from workdesk.auth.dependencies import get_workspace, require_admin
from workdesk.notices.schemas import Notice, NoticeBoardResponse, NoticeCreate
from workdesk.workspace import Workspace

router = APIRouter(prefix="", tags=["notices"])


@router.get("", response_model=NoticeBoardResponse)
async def list_notices(
    tab: str = Query("all"),
    q: Optional[str] = Query(None, description="Search title and content"),
    refresh: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
):
    return await workspace.notices.by_type(tab, q, refresh=refresh)


@router.post("", response_model=Notice, status_code=201)
async def post_notice(
    body: NoticeCreate,
    workspace: Workspace = Depends(require_admin),
):
    return await workspace.notices.post(body)


@router.delete("/{notice_id}", status_code=204)
async def delete_notice(
    notice_id: uuid.UUID,
    workspace: Workspace = Depends(require_admin),
):
    await workspace.notices.delete(notice_id)
