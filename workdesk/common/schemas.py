"""Shared base for entity records mapped from the row store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class Record(BaseModel):
    """Strict row record.

    Extra columns returned by the backend are ignored; timestamps without a
    zone (SQLite drops it on round-trip) are read as UTC so records from
    different sources stay comparable.
    """

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    @field_validator("*", mode="after")
    @classmethod
    def _aware_timestamps(cls, value: Any) -> Any:
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ImportResponse(BaseModel):
    """Bulk import outcome; rejected rows are not reported individually."""

    imported: int
