from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for permission checks."""

    ADMIN = "admin"
    MANAGER = "manager"
    OFFICER = "officer"


class WorkType(str, Enum):
    MORNING = "MORNING"
    SHIFTS = "SHIFTS"


class ReportStatus(str, Enum):
    """An absence report only ever exists as a submitted batch."""

    SUBMITTED = "SUBMITTED"


class AbsenceStatus(str, Enum):
    RECORDED = "RECORDED"
    CANCELLED = "CANCELLED"


class ConsolidationState(str, Enum):
    """Per-date consolidation state. A date without a stored row is OPEN."""

    OPEN = "OPEN"
    LOCKED = "LOCKED"


class AuditAction(str, Enum):
    REPORT_SUBMIT = "ABSENCE_REPORT_SUBMIT"
    ABSENCE_CREATE = "ABSENCE_CREATE"
    ABSENCE_CANCEL = "ABSENCE_CANCEL"
    DUPLICATE_RESOLVE = "ABSENCE_DUPLICATE_RESOLVE"
    CONSOLIDATION_APPROVE = "CONSOLIDATION_APPROVE"
    CONSOLIDATION_UNAPPROVE = "CONSOLIDATION_UNAPPROVE"


class HolidayScope(str, Enum):
    ALL = "ALL"
    MORNING_ONLY = "MORNING_ONLY"
    CUSTOM = "CUSTOM"


class AbsenceBlock(str, Enum):
    """Why an employee cannot be reported absent on a date."""

    LEAVE = "LEAVE"
    REST_DAY = "REST_DAY"
    OFFICIAL_HOLIDAY = "OFFICIAL_HOLIDAY"
