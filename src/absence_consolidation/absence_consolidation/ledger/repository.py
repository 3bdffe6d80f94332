from __future__ import annotations

from datetime import date, datetime
from typing import ContextManager, Iterable, Optional, Protocol, Sequence

from ..core.enums import ConsolidationState
from .model import (
    Absence,
    AbsenceReport,
    AbsenceRow,
    DayConsolidation,
    DaySnapshot,
    EmployeeRef,
    Holiday,
    WorkSchedule,
)


class DayTransaction(Protocol):
    """Unit of work scoped to one date.

    Implementations hold an exclusive lock on the date's consolidation row from
    the moment the transaction opens until it commits or rolls back, so every
    state check made through it stays true for the writes that follow. Any
    exception escaping the ``with`` block rolls back all writes made through it.
    """

    report_date: date

    def consolidation(self) -> DayConsolidation:
        raise NotImplementedError

    def set_state(self, *, state: ConsolidationState, actor_id: int, at: datetime) -> None:
        raise NotImplementedError

    def create_report(self, *, created_by: int, created_at: datetime) -> int:
        raise NotImplementedError

    def get_report(self, report_id: int) -> Optional[AbsenceReport]:
        """Report header only (``absences`` left empty)."""

        raise NotImplementedError

    def count_submitted_reports(self) -> int:
        raise NotImplementedError

    def insert_absence(
        self,
        *,
        employee_id: int,
        report_id: int,
        recorded_by: int,
        created_at: datetime,
        reason: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def get_absence(self, absence_id: int) -> Optional[Absence]:
        raise NotImplementedError

    def cancel_absences(self, absence_ids: Iterable[int], *, cancelled_by: int, at: datetime) -> int:
        """RECORDED -> CANCELLED for the given ids; returns how many rows changed."""

        raise NotImplementedError

    def recorded_rows(self, *, employee_id: Optional[int] = None) -> Sequence[AbsenceRow]:
        """RECORDED absences of SUBMITTED reports for this date."""

        raise NotImplementedError

    def recorded_rows_on_leave(self) -> Sequence[AbsenceRow]:
        """RECORDED rows of employees holding an approved leave covering this date."""

        raise NotImplementedError


class LedgerRepository(Protocol):
    def day_transaction(self, report_date: date) -> ContextManager[DayTransaction]:
        raise NotImplementedError

    def find_absence_date(self, absence_id: int) -> Optional[date]:
        raise NotImplementedError

    def get_employee(self, employee_id: int) -> Optional[EmployeeRef]:
        raise NotImplementedError

    def has_approved_leave(self, employee_id: int, on_date: date) -> bool:
        raise NotImplementedError

    def get_work_schedule(self, employee_id: int, year: int, month: int) -> Optional[WorkSchedule]:
        raise NotImplementedError

    def get_holiday(self, on_date: date) -> Optional[Holiday]:
        raise NotImplementedError

    def list_employees(
        self,
        *,
        dept_ids: Sequence[int],
        search: Optional[str] = None,
        limit: int = 50,
    ) -> Sequence[EmployeeRef]:
        """Active employees of the given departments, by name.

        ``search`` matches name, job title or department name, case-insensitively.
        """

        raise NotImplementedError

    def get_consolidation(self, report_date: date) -> DayConsolidation:
        raise NotImplementedError

    def get_day_snapshot(self, report_date: date) -> DaySnapshot:
        """Consolidation state and submitted reports from one read transaction."""

        raise NotImplementedError

    def list_submitted_reports(self, report_date: date) -> Sequence[AbsenceReport]:
        """Reports of the date, each carrying its RECORDED absences."""

        raise NotImplementedError

    def list_recorded_rows(self, report_date: date) -> Sequence[AbsenceRow]:
        raise NotImplementedError

    def list_recorded_rows_between(self, start_date: date, end_date: date) -> Sequence[AbsenceRow]:
        raise NotImplementedError

    def list_locked_days(
        self,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 366,
    ) -> Sequence[DayConsolidation]:
        raise NotImplementedError
