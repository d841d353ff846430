"""Common module — shared utilities for Workdesk."""

from workdesk.common.constants import (
    ADMIN_ROLES,
    DATE_FORMAT,
    ChangeKind,
    EmployeeStatus,
    LeaveStatus,
    NoticeType,
    TaskPriority,
    TaskStatus,
    UserRole,
)
from workdesk.common.exceptions import (
    AppException,
    AuthError,
    AuthTimeout,
    ConflictError,
    FetchError,
    ForbiddenException,
    ImportValidationError,
    MutationFailed,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from workdesk.common.schemas import Record

__all__ = [
    # Constants / Enums
    "ADMIN_ROLES",
    "ChangeKind",
    "DATE_FORMAT",
    "EmployeeStatus",
    "LeaveStatus",
    "NoticeType",
    "TaskPriority",
    "TaskStatus",
    "UserRole",
    # Exceptions
    "AppException",
    "AuthError",
    "AuthTimeout",
    "ConflictError",
    "FetchError",
    "ForbiddenException",
    "ImportValidationError",
    "MutationFailed",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Schemas
    "Record",
]
