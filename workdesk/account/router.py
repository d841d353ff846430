"""Account router — the signed-in user's own profile and avatar."""

from fastapi import APIRouter, Depends, File, UploadFile

from workdesk.account.schemas import ProfileUpdate
from workdesk.auth.dependencies import get_workspace
from workdesk.auth.schemas import UserOut
from workdesk.common.exceptions import ValidationException
from workdesk.workspace import Workspace

router = APIRouter(prefix="", tags=["account"])

MAX_AVATAR_BYTES = 2 * 1024 * 1024


@router.patch("/profile", response_model=UserOut)
async def update_profile(
    body: ProfileUpdate,
    workspace: Workspace = Depends(get_workspace),
):
    return UserOut.from_profile(await workspace.account.update_profile(body))


@router.post("/avatar", response_model=UserOut)
async def upload_avatar(
    file: UploadFile = File(...),
    workspace: Workspace = Depends(get_workspace),
):
    contents = await file.read()
    if len(contents) > MAX_AVATAR_BYTES:
        raise ValidationException({"file": ["File too large. Maximum size is 2 MB."]})
    profile = await workspace.account.upload_avatar(
        file.filename or "", contents, file.content_type or "application/octet-stream",
    )
    return UserOut.from_profile(profile)
