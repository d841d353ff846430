"""Account settings — edit the signed-in user's own profile and avatar."""

from __future__ import annotations

import logging
import uuid
from pathlib import PurePath
from typing import TYPE_CHECKING

from workdesk.account.schemas import ProfileUpdate
from workdesk.auth.schemas import Profile
from workdesk.common.exceptions import MutationFailed, ValidationException
from workdesk.sync.remote import RemoteError

if TYPE_CHECKING:
    from workdesk.workspace import Workspace

logger = logging.getLogger(__name__)

DEFAULT_AVATAR_EXT = "png"


def avatar_path(user_id: uuid.UUID, filename: str) -> str:
    """``<user id>-<random>.<ext>``; a fresh name per upload so cached URLs never go stale."""
    ext = PurePath(filename).suffix.lstrip(".").lower() or DEFAULT_AVATAR_EXT
    return f"{user_id}-{uuid.uuid4().hex}.{ext}"


class AccountService:
    """Settings page actions for one workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    async def _save(self, fields: dict, title: str) -> Profile:
        await self.workspace.load_profiles()
        profile = await self.workspace.profiles.update(self.workspace.user.id, fields, title=title)
        self.workspace.user = profile
        return profile

    async def update_profile(self, body: ProfileUpdate) -> Profile:
        fields = body.model_dump(exclude_unset=True)
        if "name" in fields and not fields["name"]:
            raise ValidationException({"name": ["Name is required."]})
        if "role" in fields and fields["role"] is None:
            raise ValidationException({"role": ["Role cannot be empty."]})
        if not fields:
            raise ValidationException({"body": ["Nothing to update."]})

        profile = await self._save(fields, "Update failed")
        self.workspace.notifier.push(
            "Profile updated", "Your changes have been saved. Refresh to see all updates.",
        )
        return profile

    async def upload_avatar(self, filename: str, content: bytes, content_type: str) -> Profile:
        """Store the image, then point the profile's ``avatar_url`` at it."""
        if not content_type.startswith("image/"):
            raise ValidationException({"file": ["Upload an image file."]})

        path = avatar_path(self.workspace.user.id, filename)
        try:
            url = await self.workspace.storage.upload(
                path, content, content_type, access_token=self.workspace.token,
            )
        except RemoteError as exc:
            self.workspace.notifier.push("Upload failed", exc.message, variant="destructive")
            raise MutationFailed("Upload failed", exc.message) from exc

        profile = await self._save({"avatar_url": url}, "Upload failed")
        self.workspace.notifier.push(
            "Avatar updated", "Your profile picture has been updated successfully.",
        )
        return profile
