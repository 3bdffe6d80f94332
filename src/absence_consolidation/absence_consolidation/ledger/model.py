from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AbsenceStatus, ConsolidationState, HolidayScope, ReportStatus, WorkType


@dataclass(frozen=True)
class EmployeeRef:
    """Read-only view of an employee owned by the employee-management collaborator."""

    employee_id: int
    full_name: str
    dept_id: Optional[int]
    dept_name: Optional[str]
    work_type: WorkType = WorkType.MORNING
    job_title: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class Absence:
    absence_id: int
    employee_id: int
    absence_date: date
    status: AbsenceStatus
    report_id: int
    recorded_by: int
    created_at: datetime
    reason: Optional[str] = None
    cancelled_by: Optional[int] = None
    cancelled_at: Optional[datetime] = None


@dataclass(frozen=True)
class AbsenceRow:
    """A RECORDED absence joined with employee and submitting officer display data."""

    absence_id: int
    employee_id: int
    employee_name: str
    absence_date: date
    status: AbsenceStatus
    report_id: int
    officer_id: int
    officer_name: str
    created_at: datetime
    dept_id: Optional[int] = None
    dept_name: Optional[str] = None
    work_type: WorkType = WorkType.MORNING
    job_title: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class AbsenceReport:
    report_id: int
    report_date: date
    status: ReportStatus
    created_by: int
    created_by_name: str
    created_at: datetime
    absences: tuple[AbsenceRow, ...] = ()


@dataclass(frozen=True)
class DayConsolidation:
    report_date: date
    state: ConsolidationState = ConsolidationState.OPEN
    approved_by: Optional[int] = None
    approved_by_name: Optional[str] = None
    approved_at: Optional[datetime] = None

    @property
    def is_locked(self) -> bool:
        return self.state == ConsolidationState.LOCKED


@dataclass(frozen=True)
class NewAbsence:
    """One line of an officer's submitted list."""

    employee_id: int
    reason: Optional[str] = None


@dataclass(frozen=True)
class WorkSchedule:
    """An employee's schedule for one month.

    ``days_of_week`` lists working days as 0=Saturday .. 6=Friday. Rotating
    shift patterns (``1x1``, ``1x2``, ``1x3``) count days from ``cycle_start``.
    """

    employee_id: int
    year: int
    month: int
    work_type: WorkType = WorkType.MORNING
    days_of_week: tuple[int, ...] = ()
    shift_pattern: Optional[str] = None
    cycle_start: Optional[date] = None


@dataclass(frozen=True)
class Holiday:
    holiday_date: date
    name: str
    applies_to: HolidayScope = HolidayScope.ALL


@dataclass(frozen=True)
class DaySnapshot:
    """Lock state and submitted reports of one date, read together."""

    consolidation: DayConsolidation
    reports: tuple[AbsenceReport, ...] = ()
