from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Actor roles carried in the request context."""

    SECRETARY = "secretary"
    EMPLOYEE = "employee"
    ADMIN = "admin"
    HR = "hr"
    PAYROLL = "payroll"


class ApprovalStage(str, Enum):
    """Role whose action is next required on a time card."""

    SECRETARY = "secretary"
    EMPLOYEE = "employee"
    ADMIN = "admin"
    PAYROLL = "payroll"


class TimeCardStatus(str, Enum):
    DRAFT = "draft"
    SECRETARY_SUBMITTED = "secretary_submitted"
    EMPLOYEE_APPROVED = "employee_approved"
    ADMIN_APPROVED = "admin_approved"
    PAYROLL_PROCESSED = "payroll_processed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (TimeCardStatus.PAYROLL_PROCESSED, TimeCardStatus.REJECTED)


class TimeCardKind(str, Enum):
    """Regular employee cards and substitute cards share one workflow."""

    REGULAR = "regular"
    SUBSTITUTE = "substitute"

    @property
    def label(self) -> str:
        return "time card" if self is TimeCardKind.REGULAR else "substitute time card"


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EmployeeType(str, Enum):
    TEACHER = "teacher"
    SUPPORT_STAFF = "support_staff"
    ADMINISTRATOR = "administrator"
    SUBSTITUTE = "substitute"
