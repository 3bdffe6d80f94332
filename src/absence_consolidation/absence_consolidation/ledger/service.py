from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from ..audit.model import AuditEvent
from ..audit.sink import AuditSink, emit
from ..common.datetime_utils import as_report_date, now_local
from ..common.validators import bounded_limit, optional_text, require_positive_id
from ..core.constants import DEFAULT_EMPLOYEE_PICKER_LIMIT, MAX_EMPLOYEE_PICKER_LIMIT
from ..core.enums import AbsenceBlock, AbsenceStatus, AuditAction
from ..core.exceptions import AuthorizationError, DateLockedError, NotFoundError, ValidationError
from ..users.repository import UserRepository
from ..users.service import ApprovalPolicy
from .availability import holiday_applies, is_rest_day
from .model import AbsenceReport, AbsenceRow, EmployeeRef, NewAbsence
from .repository import DayTransaction, LedgerRepository

logger = logging.getLogger(__name__)


def guard_open(day: DayTransaction) -> None:
    """Write guard: evaluated inside the date's transaction, never before it."""
    if day.consolidation().is_locked:
        raise DateLockedError(day.report_date)


def cancel_leave_conflicts(day: DayTransaction, *, actor_id: int, at: datetime) -> list[AbsenceRow]:
    """Soft-cancel RECORDED absences of employees whose leave was approved after the fact."""
    rows = list(day.recorded_rows_on_leave())
    if rows:
        day.cancel_absences([r.absence_id for r in rows], cancelled_by=actor_id, at=at)
        logger.info(
            "Cancelled %s absence(s) on %s overlapping approved leave: %s",
            len(rows),
            day.report_date,
            [r.absence_id for r in rows],
        )
    return rows


class AbsenceLedgerService:
    """Officer-facing writes and reads on the absence ledger."""

    def __init__(
        self,
        ledger: LedgerRepository,
        users: UserRepository,
        *,
        approval_policy: Optional[ApprovalPolicy] = None,
        audit: Optional[AuditSink] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._ledger = ledger
        self._users = users
        self._approval_policy = approval_policy
        self._audit = audit
        self._clock = clock

    def _officer_departments(self, officer_id: int) -> set[int]:
        user = self._users.get_by_id(officer_id)
        if not user or not user.is_active:
            raise AuthorizationError("Unknown or inactive account")
        dept_ids = set(self._users.list_department_ids(officer_id))
        if not dept_ids:
            raise AuthorizationError("Fingerprint officer must be assigned to departments before reporting")
        return dept_ids

    def _absence_block(self, employee: EmployeeRef, d: date) -> Optional[tuple[AbsenceBlock, str]]:
        """First rule that excuses the employee on ``d``: approved leave, rest day, official holiday."""
        if self._ledger.has_approved_leave(employee.employee_id, d):
            return AbsenceBlock.LEAVE, f"{employee.full_name} has an approved leave on {d.isoformat()}"

        schedule = self._ledger.get_work_schedule(employee.employee_id, d.year, d.month)
        if is_rest_day(d, schedule):
            return AbsenceBlock.REST_DAY, f"{d.isoformat()} is a rest day in {employee.full_name}'s work schedule"

        holiday = self._ledger.get_holiday(d)
        if holiday_applies(employee, holiday):
            return (
                AbsenceBlock.OFFICIAL_HOLIDAY,
                f"{d.isoformat()} is an official holiday ({holiday.name}) for morning staff",
            )
        return None

    def _require_reportable(self, employee_id: int, report_date: date, dept_ids: set[int]) -> EmployeeRef:
        employee = self._ledger.get_employee(employee_id)
        if not employee:
            raise NotFoundError(f"Employee #{employee_id} not found")
        if employee.dept_id not in dept_ids:
            raise AuthorizationError(f"{employee.full_name} is not in your departments")
        if not employee.is_active:
            raise ValidationError(f"{employee.full_name} is inactive and cannot be reported absent")
        block = self._absence_block(employee, report_date)
        if block:
            raise ValidationError(block[1])
        return employee

    def _emit_leave_cancellations(self, rows: Sequence[AbsenceRow], actor_id: int, at: datetime) -> None:
        for row in rows:
            emit(
                self._audit,
                AuditEvent(
                    action=AuditAction.ABSENCE_CANCEL,
                    entity="Absence",
                    entity_id=str(row.absence_id),
                    actor_id=actor_id,
                    timestamp=at,
                    details={"employee_id": row.employee_id, "date": row.absence_date, "cause": "approved leave"},
                ),
            )

    def submit_report(self, *, officer_id: int, report_date, entries: Sequence[NewAbsence]) -> int:
        """Create one SUBMITTED report holding every entry, all or nothing."""
        officer_id = require_positive_id(officer_id, "Officer")
        d = as_report_date(report_date)

        seen: set[int] = set()
        lines: list[tuple[int, Optional[str]]] = []
        for entry in entries:
            emp_id = require_positive_id(entry.employee_id, "Employee")
            if emp_id in seen:
                raise ValidationError(f"Employee #{emp_id} is listed twice in the same report")
            seen.add(emp_id)
            lines.append((emp_id, optional_text(entry.reason, "Reason")))

        dept_ids = self._officer_departments(officer_id)
        for emp_id, _ in lines:
            self._require_reportable(emp_id, d, dept_ids)

        now = self._clock()
        with self._ledger.day_transaction(d) as day:
            guard_open(day)
            purged = cancel_leave_conflicts(day, actor_id=officer_id, at=now)
            report_id = day.create_report(created_by=officer_id, created_at=now)
            for emp_id, reason in lines:
                day.insert_absence(
                    employee_id=emp_id,
                    report_id=report_id,
                    recorded_by=officer_id,
                    created_at=now,
                    reason=reason,
                )

        logger.info("Report #%s submitted for %s by user %s (%s entries)", report_id, d, officer_id, len(lines))
        self._emit_leave_cancellations(purged, officer_id, now)
        emit(
            self._audit,
            AuditEvent(
                action=AuditAction.REPORT_SUBMIT,
                entity="AbsenceReport",
                entity_id=str(report_id),
                actor_id=officer_id,
                timestamp=now,
                details={"report_date": d, "employee_ids": sorted(seen)},
            ),
        )
        return report_id

    def record_absence(
        self,
        *,
        employee_id: int,
        report_date,
        report_id: int,
        actor_id: int,
        reason: Optional[str] = None,
    ) -> int:
        d = as_report_date(report_date)
        employee_id = require_positive_id(employee_id, "Employee")
        report_id = require_positive_id(report_id, "Report")
        actor_id = require_positive_id(actor_id, "User")
        reason = optional_text(reason, "Reason")
        dept_ids = self._officer_departments(actor_id)

        now = self._clock()
        with self._ledger.day_transaction(d) as day:
            guard_open(day)
            purged = cancel_leave_conflicts(day, actor_id=actor_id, at=now)
            report = day.get_report(report_id)
            if not report:
                raise NotFoundError(f"Absence report #{report_id} not found")
            if report.report_date != d:
                raise ValidationError(f"Report #{report_id} belongs to {report.report_date.isoformat()}")
            if report.created_by != actor_id:
                raise AuthorizationError("Only the officer who submitted a report may add to it")

            self._require_reportable(employee_id, d, dept_ids)
            if any(r.report_id == report_id for r in day.recorded_rows(employee_id=employee_id)):
                raise ValidationError("Employee is already listed in this report")

            absence_id = day.insert_absence(
                employee_id=employee_id,
                report_id=report_id,
                recorded_by=actor_id,
                created_at=now,
                reason=reason,
            )

        self._emit_leave_cancellations(purged, actor_id, now)
        emit(
            self._audit,
            AuditEvent(
                action=AuditAction.ABSENCE_CREATE,
                entity="Absence",
                entity_id=str(absence_id),
                actor_id=actor_id,
                timestamp=now,
                details={"employee_id": employee_id, "date": d, "report_id": report_id},
            ),
        )
        return absence_id

    def cancel_absence(self, *, absence_id: int, actor_id: int) -> None:
        absence_id = require_positive_id(absence_id, "Absence")
        actor_id = require_positive_id(actor_id, "User")

        d = self._ledger.find_absence_date(absence_id)
        if d is None:
            raise NotFoundError(f"Absence #{absence_id} not found")

        now = self._clock()
        with self._ledger.day_transaction(d) as day:
            guard_open(day)
            absence = day.get_absence(absence_id)
            if not absence:
                raise NotFoundError(f"Absence #{absence_id} not found")
            if absence.status == AbsenceStatus.CANCELLED:
                raise ValidationError("Absence is already cancelled")

            report = day.get_report(absence.report_id)
            is_author = report is not None and report.created_by == actor_id
            if not is_author and not self._can_approve(actor_id):
                raise AuthorizationError("Only the reporting officer or a manager may cancel this absence")

            day.cancel_absences([absence_id], cancelled_by=actor_id, at=now)

        emit(
            self._audit,
            AuditEvent(
                action=AuditAction.ABSENCE_CANCEL,
                entity="Absence",
                entity_id=str(absence_id),
                actor_id=actor_id,
                timestamp=now,
                details={"employee_id": absence.employee_id, "date": d},
            ),
        )

    def _can_approve(self, actor_id: int) -> bool:
        return bool(self._approval_policy and self._approval_policy.has_approval_capability(actor_id))

    def reports_for_date(self, report_date, *, viewer_id: int) -> Sequence[AbsenceReport]:
        """Submitted reports of the date. Managers see all of them, officers only their own."""
        viewer_id = require_positive_id(viewer_id, "User")
        reports = self._ledger.list_submitted_reports(as_report_date(report_date))
        if self._can_approve(viewer_id):
            return list(reports)
        return [r for r in reports if r.created_by == viewer_id]

    def list_employees_for_officer(
        self, *, officer_id: int, search: Optional[str] = None, limit=None
    ) -> list[EmployeeRef]:
        """Active employees an officer may report, optionally filtered by name, job title or department."""
        dept_ids = self._officer_departments(require_positive_id(officer_id, "Officer"))
        return list(
            self._ledger.list_employees(
                dept_ids=sorted(dept_ids),
                search=optional_text(search, "Search"),
                limit=bounded_limit(limit, DEFAULT_EMPLOYEE_PICKER_LIMIT, MAX_EMPLOYEE_PICKER_LIMIT),
            )
        )

    def check_can_record(self, *, employee_id: int, report_date) -> dict:
        """Dry run of the add-to-list checks, for clients building an officer's list."""
        d = as_report_date(report_date)
        employee = self._ledger.get_employee(require_positive_id(employee_id, "Employee"))
        if not employee:
            return {"can_add": False, "message": "Employee not found"}
        if not employee.is_active:
            return {"can_add": False, "message": f"{employee.full_name} is inactive"}
        if self._ledger.get_consolidation(d).is_locked:
            return {"can_add": False, "message": f"{d.isoformat()} is finalized, unlock it to edit"}
        block = self._absence_block(employee, d)
        if block:
            return {"can_add": False, "reason": block[0].value, "message": block[1]}

        already = [r for r in self._ledger.list_recorded_rows(d) if r.employee_id == employee.employee_id]
        if already:
            officers = ", ".join(sorted({r.officer_name for r in already}))
            return {
                "can_add": True,
                "message": f"{employee.full_name} is already reported absent by {officers}; "
                "a second entry will show up as a duplicate",
            }
        return {"can_add": True, "message": None}
