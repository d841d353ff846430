"""Search router."""

from fastapi import APIRouter, Depends, Query

from workdesk.auth.dependencies import get_workspace
from workdesk.search.schemas import SearchResponse
from workdesk.workspace import Workspace

router = APIRouter(prefix="", tags=["search"])


@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query("", max_length=200, description="Matched against task and notice text"),
    workspace: Workspace = Depends(get_workspace),
):
    return await workspace.search.search(q)
