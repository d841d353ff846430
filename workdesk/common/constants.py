"""Enums and constants for Workdesk — matching the row store's column values."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    admin = "admin"
    employee = "employee"
    founder = "founder"


ADMIN_ROLES: frozenset[UserRole] = frozenset({UserRole.admin, UserRole.founder})


# ── Tasks ───────────────────────────────────────────────────────────

class TaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    overdue = "overdue"


class TaskPriority(str, enum.Enum):
    high = "high"
    medium = "medium"
    low = "low"


# ── Notices ─────────────────────────────────────────────────────────

class NoticeType(str, enum.Enum):
    announcement = "announcement"
    urgent = "urgent"
    event = "event"
    info = "info"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"


# ── Employees ───────────────────────────────────────────────────────

class EmployeeStatus(str, enum.Enum):
    active = "active"
    away = "away"
    offline = "offline"


# ── Change feed ─────────────────────────────────────────────────────

class ChangeKind(str, enum.Enum):
    insert = "INSERT"
    update = "UPDATE"
    delete = "DELETE"


# ── Defaults ────────────────────────────────────────────────────────

DEFAULT_SCHEMA = "public"
DEFAULT_DEPARTMENT = "General"
DEFAULT_DESIGNATION = "Staff"
UNASSIGNED = "Unassigned"
DEFAULT_LEAVE_TYPE = "Sick"
DEFAULT_LEAVE_REASON = "N/A"
IMPORTED_LEAVE_REASON = "Imported request"
WORKLOAD_TOP_K = 5
RECENT_TASKS_LIMIT = 3
RECENT_NOTICES_LIMIT = 2
DATE_FORMAT = "%Y-%m-%d"
