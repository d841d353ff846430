"""Account (settings page) Pydantic schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from workdesk.common.constants import UserRole


class ProfileUpdate(BaseModel):
    """Own-profile edit form; only the fields sent are changed."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    department: Optional[str] = Field(None, max_length=100)
    role: Optional[UserRole] = None
