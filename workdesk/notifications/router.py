"""Notification endpoints — the signed-in user's toast log."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from workdesk.auth.dependencies import get_workspace
from workdesk.notifications.schemas import ToastListResponse
from workdesk.workspace import Workspace

router = APIRouter(prefix="", tags=["notifications"])


# ── GET / — recent toasts ───────────────────────────────────────────

@router.get("", response_model=ToastListResponse)
async def list_notifications(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    workspace: Workspace = Depends(get_workspace),
):
    """Newest first; does not change the unread count."""
    notifier = workspace.notifier
    return ToastListResponse(data=notifier.recent(limit), unread=notifier.unread)


# ── POST /drain — unread toasts, marked read ────────────────────────

@router.post("/drain", response_model=ToastListResponse)
async def drain_notifications(workspace: Workspace = Depends(get_workspace)):
    """Return the unread toasts and mark them read (header badge clears)."""
    return ToastListResponse(data=workspace.notifier.drain(), unread=0)
