"""Attendance board — month grid of profiles × days, cell and column toggles, check-in.

Business logic:
  - The grid window is one calendar month; switching months starts a new
    load and a late response for the previous month is discarded
  - Rows are every profile, sorted by name (ascending or descending)
  - A column toggle marks everyone present unless everyone already is
  - Check-in flips the signed-in user's mark for today
"""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING, Hashable, Optional

from workdesk.attendance.schemas import (
    ATTENDANCE,
    AttendanceGrid,
    AttendanceMark,
    AttendanceRow,
    CheckInResponse,
    ColumnToggleResponse,
)
from workdesk.auth.schemas import Profile
from workdesk.common.exceptions import ValidationException
from workdesk.common.export import CsvExport, report_filename, to_csv
from workdesk.sync.remote import Query

if TYPE_CHECKING:
    from workdesk.workspace import Workspace

logger = logging.getLogger(__name__)


def month_window(year: int, month: int) -> Query:
    """All marks dated inside ``year-month``."""
    last = calendar.monthrange(year, month)[1]
    return (
        Query()
        .gte("date", date(year, month, 1))
        .lte("date", date(year, month, last))
        .order_by("date")
    )


def _absent(key: Hashable) -> AttendanceMark:
    profile_id, day = key
    return AttendanceMark(profile_id=profile_id, date=day, present=False)


class AttendanceBoard:
    """Attendance page view model for one workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.marks = workspace.collection(ATTENDANCE)
        self.today = workspace.collection(ATTENDANCE)
        self.month: Optional[tuple[int, int]] = None
        self.ascending = True

    # ── Loading ─────────────────────────────────────────────────────

    async def load(
        self,
        year: int,
        month: int,
        *,
        ascending: Optional[bool] = None,
        refresh: bool = False,
    ) -> AttendanceGrid:
        """Show ``year-month``; returns the grid for whichever month is current afterwards."""
        if ascending is not None:
            self.ascending = ascending

        window = month_window(year, month)
        if refresh or self.marks.window != window:
            snapshot = await self.marks.load(window)
            if snapshot is not None:
                self.month = (year, month)
            else:
                logger.debug("Attendance load for %d-%02d superseded", year, month)
        return await self.grid()

    async def rows(self) -> list[Profile]:
        profiles = await self.workspace.load_profiles()
        return sorted(
            profiles,
            key=lambda p: p.display_name.casefold(),
            reverse=not self.ascending,
        )

    def days(self) -> list[int]:
        year, month = self._require_month()
        return list(range(1, calendar.monthrange(year, month)[1] + 1))

    async def grid(self) -> AttendanceGrid:
        year, month = self._require_month()
        days = self.days()
        rows = []
        for profile in await self.rows():
            marks = {d: self._present(profile.id, date(year, month, d)) for d in days}
            rows.append(AttendanceRow(
                profile_id=profile.id,
                name=profile.display_name,
                days=marks,
                present_days=sum(marks.values()),
            ))
        return AttendanceGrid(
            year=year,
            month=month,
            days=days,
            ascending=self.ascending,
            rows=rows,
            columns_all_present={
                d: bool(rows) and all(r.days[d] for r in rows) for d in days
            },
        )

    # ── Toggles ─────────────────────────────────────────────────────

    async def toggle_cell(self, profile_id: uuid.UUID, day: int) -> AttendanceMark:
        """Flip one profile's mark for *day* of the loaded month."""
        key = (profile_id, self._date(day))
        return await self.marks.toggle(key, "present", _absent)

    async def toggle_column(self, day: int) -> ColumnToggleResponse:
        """Mark every row present for *day*, or absent if all already are."""
        on = self._date(day)
        keys = [(p.id, on) for p in await self.rows()]
        if not keys:
            return ColumnToggleResponse(day=day, present=False, rows=0)
        target = await self.marks.toggle_group(keys, "present", _absent)
        return ColumnToggleResponse(day=day, present=target, rows=len(keys))

    async def checked_in(self, profile_id: uuid.UUID, today: date) -> bool:
        await self.today.ensure(Query().eq("profile_id", profile_id).eq("date", today))
        mark = self.today.get((profile_id, today))
        return bool(mark and mark.present)

    async def check_in_out(self, profile_id: uuid.UUID, today: date) -> CheckInResponse:
        """Toggle *profile_id*'s presence for *today*."""
        await self.checked_in(profile_id, today)
        mark = await self.today.toggle((profile_id, today), "present", _absent)
        if mark.present:
            self.workspace.notifier.push(
                "Checked In", "You have successfully checked in for today.",
            )
        else:
            self.workspace.notifier.push(
                "Checked Out", "You have successfully checked out for today.",
            )
        return CheckInResponse(date=today, checked_in=mark.present, mark=mark)

    # ── Export ──────────────────────────────────────────────────────

    async def export_csv(self, today: Optional[date] = None) -> CsvExport:
        """P/A grid of the loaded month."""
        grid = await self.grid()
        if not grid.rows:
            self.workspace.notifier.push("Export failed", "No records to export.")
            raise ValidationException({"export": ["No records to export."]})

        content, count = to_csv(
            ["Employee", *(f"Day {d}" for d in grid.days)],
            ([r.name, *("P" if r.days[d] else "A" for d in grid.days)] for r in grid.rows),
        )
        self.workspace.notifier.push("Export successful", "Your report has been downloaded.")
        return CsvExport(
            filename=report_filename("attendance", today), content=content, rows=count,
        )

    # ── Internal helpers ────────────────────────────────────────────

    def _require_month(self) -> tuple[int, int]:
        if self.month is None:
            raise ValidationException({"month": ["Load a month before using the grid."]})
        return self.month

    def _date(self, day: int) -> date:
        year, month = self._require_month()
        if not 1 <= day <= calendar.monthrange(year, month)[1]:
            raise ValidationException({"day": [f"Day {day} is not in {year}-{month:02d}."]})
        return date(year, month, day)

    def _present(self, profile_id: uuid.UUID, on: date) -> bool:
        mark = self.marks.get((profile_id, on))
        return bool(mark and mark.present)
