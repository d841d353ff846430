"""Leave board — apply, approve / reject, delete, bulk import and CSV export.

Business logic:
  - Admins and founders see every request; everyone else sees their own
  - Duration is the inclusive day count, floored at one day
  - Only admin roles change a request's status
  - Imported rows that name no known profile are skipped
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from workdesk.common.constants import (
    DEFAULT_LEAVE_REASON,
    DEFAULT_LEAVE_TYPE,
    IMPORTED_LEAVE_REASON,
    LeaveStatus,
)
from workdesk.common.exceptions import (
    ForbiddenException,
    ImportValidationError,
    MutationFailed,
    ValidationException,
)
from workdesk.common.export import CsvExport, report_filename, to_csv
from workdesk.common.importer import as_date, collect, pick
from workdesk.leave.schemas import (
    LEAVES,
    LeaveApplyRequest,
    LeaveListResponse,
    LeaveOut,
    LeaveRequest,
    duration_days,
)
from workdesk.sync import aggregator
from workdesk.sync.remote import Query, RemoteError

if TYPE_CHECKING:
    from workdesk.workspace import Workspace

logger = logging.getLogger(__name__)

_ACTIONS = {
    LeaveStatus.approved: "approved",
    LeaveStatus.rejected: "rejected",
}


class LeaveBoard:
    """Leave management page view model for one workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.leaves = workspace.collection(LEAVES)

    def window(self) -> Query:
        query = Query()
        if not self.workspace.user.is_admin:
            query = query.eq("profile_id", self.workspace.user.id)
        return query.order_by("created_at", ascending=False)

    async def load(self, *, refresh: bool = False) -> list[LeaveRequest]:
        return await self.leaves.ensure(self.window(), refresh=refresh)

    async def listing(self, *, refresh: bool = False) -> LeaveListResponse:
        leaves = await self.load(refresh=refresh)
        return LeaveListResponse(
            data=await self.present(leaves),
            pending=aggregator.count_where(leaves, lambda lv: lv.status == LeaveStatus.pending),
        )

    async def present(self, leaves: list[LeaveRequest]) -> list[LeaveOut]:
        names = await self.workspace.profile_names()
        return [
            LeaveOut(**lv.model_dump(), name=names.get(lv.profile_id, "Unknown"))
            for lv in leaves
        ]

    # ── Apply / decide / delete ─────────────────────────────────────

    async def apply(self, body: LeaveApplyRequest) -> LeaveRequest:
        await self.load()
        leave = LeaveRequest(
            id=uuid.uuid4(),
            profile_id=self.workspace.user.id,
            leave_type=body.leave_type,
            start_date=body.start_date,
            end_date=body.end_date,
            duration_days=duration_days(body.start_date, body.end_date),
            reason=body.reason or DEFAULT_LEAVE_REASON,
            status=LeaveStatus.pending,
            created_at=datetime.now(timezone.utc),
        )
        await self.leaves.create(leave, title="Error")
        self.workspace.notifier.push("Leave applied", "Your leave request has been submitted.")
        return leave

    async def decide(self, leave_id: uuid.UUID, status: LeaveStatus) -> LeaveRequest:
        """Approve or reject; admin roles only."""
        if not self.workspace.user.is_admin:
            raise ForbiddenException("Only admins can approve or reject leave.")
        if status not in _ACTIONS:
            raise ValidationException({"status": ["Use Approved or Rejected."]})
        await self.load()
        leave = await self.leaves.update(leave_id, {"status": status}, title="Action failed")
        names = await self.workspace.profile_names()
        action = _ACTIONS[status]
        self.workspace.notifier.push(
            f"Leave {action}",
            f"{names.get(leave.profile_id, 'Employee')}'s leave has been {action}.",
        )
        return leave

    async def approve(self, leave_id: uuid.UUID) -> LeaveRequest:
        return await self.decide(leave_id, LeaveStatus.approved)

    async def reject(self, leave_id: uuid.UUID) -> LeaveRequest:
        return await self.decide(leave_id, LeaveStatus.rejected)

    async def delete(self, leave_id: uuid.UUID) -> LeaveRequest:
        await self.load()
        leave = await self.leaves.delete(leave_id, title="Action failed")
        self.workspace.notifier.push("Leave deleted", "Leave record has been removed.")
        return leave

    # ── Import / export ─────────────────────────────────────────────

    async def import_rows(self, rows: list[dict[str, Any]]) -> int:
        """Insert one pending request per valid row; return how many were inserted."""
        if not self.workspace.user.is_admin:
            raise ForbiddenException("Only admins can import leave records.")
        profiles = await self.workspace.profiles_by_email(refresh=True)
        now = datetime.now(timezone.utc)

        async def build(number: int, row: dict[str, Any]) -> LeaveRequest:
            email = pick(row, "email", "Email")
            if email is None:
                raise ImportValidationError(number, "missing email")
            profile = profiles.get(str(email).casefold())
            if profile is None:
                raise ImportValidationError(number, f"no profile with email {email}")
            start = as_date(pick(row, "start_date", "startDate", "Start Date"), number, "start_date")
            end = as_date(pick(row, "end_date", "endDate", "End Date"), number, "end_date")
            return LeaveRequest(
                id=uuid.uuid4(),
                profile_id=profile.id,
                leave_type=str(pick(row, "type", "LeaveType", "leave_type") or DEFAULT_LEAVE_TYPE),
                start_date=start,
                end_date=end,
                duration_days=duration_days(start, end),
                reason=str(pick(row, "reason", "Reason") or IMPORTED_LEAVE_REASON),
                status=LeaveStatus.pending,
                created_at=now,
            )

        leaves, skipped = await collect(rows, build)
        if leaves:
            try:
                await self.workspace.remote.insert(
                    LEAVES.table, [LEAVES.to_row(lv) for lv in leaves],
                )
            except RemoteError as exc:
                self.workspace.notifier.push("Import Failed", exc.message, variant="destructive")
                raise MutationFailed("Import Failed", exc.message) from exc

        logger.info("Leave import: %d inserted, %d skipped", len(leaves), skipped)
        self.workspace.notifier.push("Import Complete", f"{len(leaves)} leaves submitted.")
        return len(leaves)

    async def export_csv(self, today: Optional[date] = None) -> CsvExport:
        leaves = await self.present(await self.load())
        if not leaves:
            self.workspace.notifier.push("Export failed", "No records to export.")
            raise ValidationException({"export": ["No records to export."]})

        content, count = to_csv(
            ["Employee", "Duration (Days)", "Start Date", "End Date", "Type", "Status", "Reason"],
            (
                [
                    lv.name,
                    lv.duration_days,
                    lv.start_date.isoformat(),
                    lv.end_date.isoformat(),
                    lv.leave_type,
                    lv.status.value,
                    lv.reason,
                ]
                for lv in leaves
            ),
        )
        self.workspace.notifier.push("Export successful", "Your report has been downloaded.")
        return CsvExport(filename=report_filename("leaves", today), content=content, rows=count)
