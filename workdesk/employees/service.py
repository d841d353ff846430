"""Employee directory — employees joined with their profiles, onboarding and bulk import.

Business logic:
  - A profile has at most one employee record
  - Profiles without an employee record are offered for onboarding
  - Imported rows naming an unknown email, or a profile that is already
    an employee, are skipped
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING, Any, Optional

from workdesk.common.constants import (
    DEFAULT_DEPARTMENT,
    DEFAULT_DESIGNATION,
    EmployeeStatus,
)
from workdesk.common.exceptions import (
    ConflictError,
    ForbiddenException,
    ImportValidationError,
    MutationFailed,
    NotFoundException,
    ValidationException,
)
from workdesk.common.importer import as_date, collect, pick
from workdesk.employees.schemas import (
    EMPLOYEES,
    AvailableProfile,
    Employee,
    EmployeeCreate,
    EmployeeDirectoryResponse,
    EmployeeOut,
    EmployeeStats,
    EmployeeUpdate,
)
from workdesk.sync import aggregator
from workdesk.sync.remote import Query, RemoteError

if TYPE_CHECKING:
    from workdesk.workspace import Workspace

logger = logging.getLogger(__name__)

EMPLOYEE_WINDOW = Query()
SEARCH_FIELDS = ("name", "email", "department")
MISSING = "N/A"


class EmployeeDirectory:
    """Employees page view model for one workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.employees = workspace.collection(EMPLOYEES)

    async def load(self, *, refresh: bool = False) -> list[Employee]:
        return await self.employees.ensure(EMPLOYEE_WINDOW, refresh=refresh)

    async def directory(
        self,
        query: Optional[str] = None,
        *,
        refresh: bool = False,
        today: Optional[date] = None,
    ) -> EmployeeDirectoryResponse:
        """Search-filtered rows, with stats over the whole directory."""
        rows = await self.present(await self.load(refresh=refresh))
        return EmployeeDirectoryResponse(
            query=query,
            stats=self.stats(rows, today),
            data=aggregator.search(rows, query, SEARCH_FIELDS),
        )

    async def present(self, employees: list[Employee]) -> list[EmployeeOut]:
        profiles = {p.id: p for p in await self.workspace.load_profiles()}
        rows = []
        for e in employees:
            profile = profiles.get(e.profile_id)
            rows.append(EmployeeOut(
                **e.model_dump(),
                name=profile.display_name if profile else MISSING,
                email=profile.email if profile else MISSING,
                avatar_url=profile.avatar_url if profile else None,
            ))
        return sorted(rows, key=lambda r: r.name.casefold())

    @staticmethod
    def stats(rows: list[EmployeeOut], today: Optional[date] = None) -> EmployeeStats:
        today = today or date.today()
        return EmployeeStats(
            total=len(rows),
            active=aggregator.count_where(rows, lambda r: r.status == EmployeeStatus.active),
            joined_this_month=aggregator.count_where(
                rows,
                lambda r: r.joining_date is not None
                and (r.joining_date.year, r.joining_date.month) == (today.year, today.month),
            ),
        )

    async def available_profiles(self, *, refresh: bool = False) -> list[AvailableProfile]:
        """Profiles that have no employee record yet."""
        taken = {e.profile_id for e in await self.load(refresh=refresh)}
        profiles = await self.workspace.load_profiles(refresh=refresh)
        return [
            AvailableProfile(id=p.id, name=p.display_name, email=p.email)
            for p in profiles
            if p.id not in taken
        ]

    # ── Mutations ───────────────────────────────────────────────────

    async def add(self, body: EmployeeCreate) -> Employee:
        self._require_admin()
        employees = await self.load()
        if any(e.profile_id == body.profile_id for e in employees):
            raise ConflictError("profile_id", body.profile_id)
        names = await self.workspace.profile_names()
        if body.profile_id not in names:
            raise NotFoundException("Profile", body.profile_id)

        employee = Employee(
            id=uuid.uuid4(),
            **body.model_dump(exclude={"joining_date"}),
            joining_date=body.joining_date or date.today(),
        )
        await self.employees.create(employee, title="Failed to add employee")
        self.workspace.notifier.push("Success", "Employee added successfully")
        return employee

    async def update(self, employee_id: uuid.UUID, body: EmployeeUpdate) -> Employee:
        self._require_admin()
        await self.load()
        fields = body.model_dump(exclude_unset=True)
        if "status" in fields and fields["status"] is None:
            raise ValidationException({"status": ["Status cannot be empty."]})
        if not fields:
            raise ValidationException({"body": ["Nothing to update."]})
        employee = await self.employees.update(employee_id, fields)
        self.workspace.notifier.push("Employee updated", "Employee details have been saved.")
        return employee

    def _require_admin(self) -> None:
        if not self.workspace.user.is_admin:
            raise ForbiddenException("Only admins can manage employees.")

    # ── Import ──────────────────────────────────────────────────────

    async def import_rows(self, rows: list[dict[str, Any]], today: Optional[date] = None) -> int:
        """Insert one active employee per new, known email; return how many were inserted."""
        self._require_admin()
        today = today or date.today()
        profiles = await self.workspace.profiles_by_email(refresh=True)
        taken = {e.profile_id for e in await self.load(refresh=True)}

        async def build(number: int, row: dict[str, Any]) -> Employee:
            email = pick(row, "email", "Email")
            if email is None:
                raise ImportValidationError(number, "missing email")
            profile = profiles.get(str(email).casefold())
            if profile is None:
                raise ImportValidationError(number, f"no profile with email {email}")
            if profile.id in taken:
                raise ImportValidationError(number, f"{email} is already an employee")
            joined = pick(row, "joining_date", "JoiningDate", "Joining Date")
            employee = Employee(
                id=uuid.uuid4(),
                profile_id=profile.id,
                designation=str(pick(row, "designation", "Designation") or DEFAULT_DESIGNATION),
                department=str(pick(row, "department", "Department") or DEFAULT_DEPARTMENT),
                phone=str(pick(row, "phone", "Phone") or ""),
                joining_date=today if joined is None else as_date(joined, number, "joining_date"),
                status=EmployeeStatus.active,
            )
            taken.add(profile.id)
            return employee

        employees, skipped = await collect(rows, build)
        if employees:
            try:
                await self.workspace.remote.insert(
                    EMPLOYEES.table, [EMPLOYEES.to_row(e) for e in employees],
                )
            except RemoteError as exc:
                self.workspace.notifier.push("Import Failed", exc.message, variant="destructive")
                raise MutationFailed("Import Failed", exc.message) from exc

        logger.info("Employee import: %d inserted, %d skipped", len(employees), skipped)
        self.workspace.notifier.push(
            "Import Complete", "Employees have been imported successfully.",
        )
        return len(employees)

