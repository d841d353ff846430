"""Auth Pydantic schemas — profiles, sign-in / sign-up bodies, session responses."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from workdesk.common.constants import ADMIN_ROLES, DEFAULT_DEPARTMENT, UserRole
from workdesk.common.schemas import Record
from workdesk.sync.entity import EntitySpec


# ── Entity ──────────────────────────────────────────────────────────

class Profile(Record):
    """A signed-up user, as stored in ``profiles``."""

    id: uuid.UUID
    name: Optional[str] = None
    email: str
    role: UserRole = UserRole.employee
    department: Optional[str] = None
    avatar_url: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email.split("@")[0]

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_founder(self) -> bool:
        return self.role == UserRole.founder

    @classmethod
    def fallback(cls, id: uuid.UUID, email: str) -> Profile:
        """Stand-in used when the stored profile can't be read in time."""
        return cls(
            id=id,
            name=email.split("@")[0],
            email=email,
            role=UserRole.employee,
            department=DEFAULT_DEPARTMENT,
        )


PROFILES: EntitySpec[Profile] = EntitySpec("profiles", "profiles", Profile)


# ── Requests ────────────────────────────────────────────────────────

class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = UserRole.employee


# ── Responses ───────────────────────────────────────────────────────

class UserOut(BaseModel):
    """The signed-in user as the pages see it."""

    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    department: str
    avatar: Optional[str] = None
    is_admin: bool
    is_founder: bool

    @classmethod
    def from_profile(cls, profile: Profile) -> UserOut:
        return cls(
            id=profile.id,
            name=profile.display_name,
            email=profile.email,
            role=profile.role,
            department=profile.department or DEFAULT_DEPARTMENT,
            avatar=profile.avatar_url,
            is_admin=profile.is_admin,
            is_founder=profile.is_founder,
        )


class SessionResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    user: UserOut


class SignUpResponse(BaseModel):
    id: Optional[uuid.UUID] = None
    email: str
    confirmation_required: bool


class MessageResponse(BaseModel):
    message: str
