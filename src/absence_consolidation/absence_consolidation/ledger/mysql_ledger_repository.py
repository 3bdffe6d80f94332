from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterable, Iterator, Optional, Sequence

from ..core.constants import NO_NAME
from ..core.enums import AbsenceStatus, ConsolidationState, HolidayScope, ReportStatus, WorkType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
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
from .repository import DayTransaction, LedgerRepository

_ROW_SELECT = """
    SELECT a.absence_id, a.employee_id, e.full_name AS employee_name, e.job_title, e.work_type,
           e.dept_id, d.dept_name, a.absence_date, a.status, a.report_id, a.reason,
           r.created_by AS officer_id, u.full_name AS officer_name, a.created_at
    FROM absences a
    JOIN absence_reports r ON r.report_id = a.report_id
    JOIN employees e ON e.employee_id = a.employee_id
    LEFT JOIN departments d ON d.dept_id = e.dept_id
    LEFT JOIN users u ON u.user_id = r.created_by
"""


def _to_row(r: dict) -> AbsenceRow:
    return AbsenceRow(
        absence_id=int(r["absence_id"]),
        employee_id=int(r["employee_id"]),
        employee_name=r.get("employee_name") or NO_NAME,
        absence_date=r["absence_date"],
        status=AbsenceStatus(r["status"]),
        report_id=int(r["report_id"]),
        officer_id=int(r["officer_id"]),
        officer_name=r.get("officer_name") or NO_NAME,
        created_at=r["created_at"],
        dept_id=r.get("dept_id"),
        dept_name=r.get("dept_name"),
        work_type=WorkType(r.get("work_type") or WorkType.MORNING.value),
        job_title=r.get("job_title"),
        reason=r.get("reason"),
    )


def _to_consolidation(report_date: date, r: Optional[dict]) -> DayConsolidation:
    if not r:
        return DayConsolidation(report_date=report_date)
    return DayConsolidation(
        report_date=r["report_date"],
        state=ConsolidationState(r["state"]),
        approved_by=r.get("approved_by"),
        approved_by_name=r.get("approved_by_name"),
        approved_at=r.get("approved_at"),
    )


def _to_employee(r: dict) -> EmployeeRef:
    return EmployeeRef(
        employee_id=int(r["employee_id"]),
        full_name=r["full_name"],
        dept_id=r.get("dept_id"),
        dept_name=r.get("dept_name"),
        work_type=WorkType(r.get("work_type") or WorkType.MORNING.value),
        job_title=r.get("job_title"),
        is_active=bool(r.get("is_active", True)),
    )


def _like(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _to_report(r: dict, absences: Sequence[AbsenceRow] = ()) -> AbsenceReport:
    return AbsenceReport(
        report_id=int(r["report_id"]),
        report_date=r["report_date"],
        status=ReportStatus(r["status"]),
        created_by=int(r["created_by"]),
        created_by_name=r.get("created_by_name") or NO_NAME,
        created_at=r["created_at"],
        absences=tuple(absences),
    )


def _select_consolidation(cur, report_date: date) -> DayConsolidation:
    cur.execute(
        """
        SELECT c.report_date, c.state, c.approved_by, c.approved_at, u.full_name AS approved_by_name
        FROM daily_consolidations c
        LEFT JOIN users u ON u.user_id = c.approved_by
        WHERE c.report_date=%s
        """,
        (report_date,),
    )
    return _to_consolidation(report_date, fetchone(cur))


def _select_submitted_reports(cur, report_date: date) -> list[AbsenceReport]:
    cur.execute(
        """
        SELECT r.report_id, r.report_date, r.status, r.created_by, r.created_at,
               u.full_name AS created_by_name
        FROM absence_reports r
        LEFT JOIN users u ON u.user_id = r.created_by
        WHERE r.report_date=%s AND r.status=%s
        ORDER BY u.full_name, r.created_at
        """,
        (report_date, ReportStatus.SUBMITTED.value),
    )
    headers = fetchall(cur)

    cur.execute(
        f"{_ROW_SELECT} WHERE a.absence_date=%s AND a.status=%s AND r.status=%s ORDER BY e.full_name",
        (report_date, AbsenceStatus.RECORDED.value, ReportStatus.SUBMITTED.value),
    )
    by_report: dict[int, list[AbsenceRow]] = {}
    for r in fetchall(cur):
        row = _to_row(r)
        by_report.setdefault(row.report_id, []).append(row)

    return [_to_report(h, by_report.get(int(h["report_id"]), ())) for h in headers]


class MySQLDayTransaction(DayTransaction):
    """Runs on the cursor of a transaction that already holds the date row lock."""

    def __init__(self, cur, report_date: date, locked_row: dict):
        self._cur = cur
        self.report_date = report_date
        self._locked_row = locked_row

    def consolidation(self) -> DayConsolidation:
        return _to_consolidation(self.report_date, self._locked_row)

    def set_state(self, *, state: ConsolidationState, actor_id: int, at: datetime) -> None:
        approved_by = int(actor_id) if state == ConsolidationState.LOCKED else None
        approved_at = at if state == ConsolidationState.LOCKED else None
        self._cur.execute(
            """
            UPDATE daily_consolidations
            SET state=%s, approved_by=%s, approved_at=%s
            WHERE report_date=%s
            """,
            (state.value, approved_by, approved_at, self.report_date),
        )
        self._locked_row = dict(self._locked_row, state=state.value, approved_by=approved_by, approved_at=approved_at)

    def create_report(self, *, created_by: int, created_at: datetime) -> int:
        self._cur.execute(
            """
            INSERT INTO absence_reports(report_date, status, created_by, created_at)
            VALUES(%s,%s,%s,%s)
            """,
            (self.report_date, ReportStatus.SUBMITTED.value, int(created_by), created_at),
        )
        return int(self._cur.lastrowid)

    def get_report(self, report_id: int) -> Optional[AbsenceReport]:
        self._cur.execute(
            """
            SELECT r.report_id, r.report_date, r.status, r.created_by, r.created_at,
                   u.full_name AS created_by_name
            FROM absence_reports r
            LEFT JOIN users u ON u.user_id = r.created_by
            WHERE r.report_id=%s
            """,
            (int(report_id),),
        )
        r = fetchone(self._cur)
        return _to_report(r) if r else None

    def count_submitted_reports(self) -> int:
        self._cur.execute(
            "SELECT COUNT(*) AS n FROM absence_reports WHERE report_date=%s AND status=%s",
            (self.report_date, ReportStatus.SUBMITTED.value),
        )
        r = fetchone(self._cur)
        return int(r["n"]) if r else 0

    def insert_absence(
        self,
        *,
        employee_id: int,
        report_id: int,
        recorded_by: int,
        created_at: datetime,
        reason: Optional[str] = None,
    ) -> int:
        self._cur.execute(
            """
            INSERT INTO absences(employee_id, absence_date, status, report_id, reason, recorded_by, created_at)
            VALUES(%s,%s,%s,%s,%s,%s,%s)
            """,
            (
                int(employee_id),
                self.report_date,
                AbsenceStatus.RECORDED.value,
                int(report_id),
                reason,
                int(recorded_by),
                created_at,
            ),
        )
        return int(self._cur.lastrowid)

    def get_absence(self, absence_id: int) -> Optional[Absence]:
        self._cur.execute(
            """
            SELECT absence_id, employee_id, absence_date, status, report_id, reason,
                   recorded_by, created_at, cancelled_by, cancelled_at
            FROM absences
            WHERE absence_id=%s
            """,
            (int(absence_id),),
        )
        r = fetchone(self._cur)
        if not r:
            return None
        return Absence(
            absence_id=int(r["absence_id"]),
            employee_id=int(r["employee_id"]),
            absence_date=r["absence_date"],
            status=AbsenceStatus(r["status"]),
            report_id=int(r["report_id"]),
            recorded_by=int(r["recorded_by"]),
            created_at=r["created_at"],
            reason=r.get("reason"),
            cancelled_by=r.get("cancelled_by"),
            cancelled_at=r.get("cancelled_at"),
        )

    def cancel_absences(self, absence_ids: Iterable[int], *, cancelled_by: int, at: datetime) -> int:
        ids = [int(i) for i in absence_ids]
        if not ids:
            return 0
        placeholders = ",".join(["%s"] * len(ids))
        self._cur.execute(
            f"""
            UPDATE absences
            SET status=%s, cancelled_by=%s, cancelled_at=%s
            WHERE absence_date=%s AND status=%s AND absence_id IN ({placeholders})
            """,
            tuple(
                [AbsenceStatus.CANCELLED.value, int(cancelled_by), at, self.report_date, AbsenceStatus.RECORDED.value]
                + ids
            ),
        )
        return int(self._cur.rowcount)

    def recorded_rows(self, *, employee_id: Optional[int] = None) -> Sequence[AbsenceRow]:
        clauses = ["a.absence_date=%s", "a.status=%s", "r.status=%s"]
        params: list[object] = [self.report_date, AbsenceStatus.RECORDED.value, ReportStatus.SUBMITTED.value]
        if employee_id is not None:
            clauses.append("a.employee_id=%s")
            params.append(int(employee_id))

        self._cur.execute(
            f"{_ROW_SELECT} WHERE {' AND '.join(clauses)} ORDER BY a.created_at, a.absence_id",
            tuple(params),
        )
        return [_to_row(r) for r in fetchall(self._cur)]

    def recorded_rows_on_leave(self) -> Sequence[AbsenceRow]:
        self._cur.execute(
            f"""
            {_ROW_SELECT}
            WHERE a.absence_date=%s AND a.status=%s AND r.status=%s
              AND EXISTS (
                  SELECT 1 FROM leave_requests l
                  WHERE l.employee_id = a.employee_id AND l.status='APPROVED'
                    AND l.start_date<=%s AND l.end_date>=%s
              )
            ORDER BY a.created_at, a.absence_id
            """,
            (
                self.report_date,
                AbsenceStatus.RECORDED.value,
                ReportStatus.SUBMITTED.value,
                self.report_date,
                self.report_date,
            ),
        )
        return [_to_row(r) for r in fetchall(self._cur)]


class MySQLLedgerRepository(LedgerRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @contextmanager
    def day_transaction(self, report_date: date) -> Iterator[MySQLDayTransaction]:
        with db_cursor(self._conn_factory) as (_, cur):
            # Make sure the lock target exists, then hold it until commit/rollback.
            cur.execute(
                """
                INSERT INTO daily_consolidations(report_date, state)
                VALUES(%s,%s)
                ON DUPLICATE KEY UPDATE report_date=report_date
                """,
                (report_date, ConsolidationState.OPEN.value),
            )
            cur.execute(
                """
                SELECT report_date, state, approved_by, approved_at
                FROM daily_consolidations
                WHERE report_date=%s
                FOR UPDATE
                """,
                (report_date,),
            )
            locked_row = fetchone(cur) or {"report_date": report_date, "state": ConsolidationState.OPEN.value}
            yield MySQLDayTransaction(cur, report_date, locked_row)

    def find_absence_date(self, absence_id: int) -> Optional[date]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT absence_date FROM absences WHERE absence_id=%s", (int(absence_id),))
            r = fetchone(cur)
            return r["absence_date"] if r else None

    def get_employee(self, employee_id: int) -> Optional[EmployeeRef]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT e.employee_id, e.full_name, e.job_title, e.work_type, e.dept_id, e.is_active, d.dept_name
                FROM employees e
                LEFT JOIN departments d ON d.dept_id = e.dept_id
                WHERE e.employee_id=%s
                """,
                (int(employee_id),),
            )
            r = fetchone(cur)
            return _to_employee(r) if r else None

    def list_employees(
        self,
        *,
        dept_ids: Sequence[int],
        search: Optional[str] = None,
        limit: int = 50,
    ) -> Sequence[EmployeeRef]:
        ids = [int(i) for i in dept_ids]
        if not ids:
            return []
        placeholders = ",".join(["%s"] * len(ids))
        clauses = ["e.is_active=1", f"e.dept_id IN ({placeholders})"]
        params: list[object] = list(ids)
        if search:
            # utf8mb4_unicode_ci comparisons are case-insensitive
            clauses.append("(e.full_name LIKE %s OR e.job_title LIKE %s OR d.dept_name LIKE %s)")
            params.extend([_like(search)] * 3)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT e.employee_id, e.full_name, e.job_title, e.work_type, e.dept_id, e.is_active, d.dept_name
                FROM employees e
                LEFT JOIN departments d ON d.dept_id = e.dept_id
                WHERE {' AND '.join(clauses)}
                ORDER BY e.full_name
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [_to_employee(r) for r in fetchall(cur)]

    def get_work_schedule(self, employee_id: int, year: int, month: int) -> Optional[WorkSchedule]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT employee_id, year, month, work_type, days_of_week, shift_pattern, cycle_start_date
                FROM work_schedules
                WHERE employee_id=%s AND year=%s AND month=%s
                """,
                (int(employee_id), int(year), int(month)),
            )
            r = fetchone(cur)
        if not r:
            return None
        days = [p.strip() for p in (r.get("days_of_week") or "").split(",")]
        return WorkSchedule(
            employee_id=int(r["employee_id"]),
            year=int(r["year"]),
            month=int(r["month"]),
            work_type=WorkType(r.get("work_type") or WorkType.MORNING.value),
            days_of_week=tuple(int(p) for p in days if p.isdigit() and int(p) <= 6),
            shift_pattern=r.get("shift_pattern"),
            cycle_start=r.get("cycle_start_date"),
        )

    def get_holiday(self, on_date: date) -> Optional[Holiday]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT holiday_date, name, applies_to
                FROM holidays
                WHERE holiday_date=%s
                ORDER BY holiday_id
                LIMIT 1
                """,
                (on_date,),
            )
            r = fetchone(cur)
        if not r:
            return None
        return Holiday(
            holiday_date=r["holiday_date"],
            name=r["name"],
            applies_to=HolidayScope(r.get("applies_to") or HolidayScope.ALL.value),
        )

    def has_approved_leave(self, employee_id: int, on_date: date) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT 1 AS hit
                FROM leave_requests
                WHERE employee_id=%s AND status='APPROVED' AND start_date<=%s AND end_date>=%s
                LIMIT 1
                """,
                (int(employee_id), on_date, on_date),
            )
            return fetchone(cur) is not None

    def get_consolidation(self, report_date: date) -> DayConsolidation:
        with db_cursor(self._conn_factory) as (_, cur):
            return _select_consolidation(cur, report_date)

    def get_day_snapshot(self, report_date: date) -> DaySnapshot:
        with db_cursor(self._conn_factory) as (_, cur):
            # Plain SELECTs of one REPEATABLE READ transaction share its snapshot.
            cur.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ")
            reports = _select_submitted_reports(cur, report_date)
            consolidation = _select_consolidation(cur, report_date)
        return DaySnapshot(consolidation=consolidation, reports=tuple(reports))

    def list_submitted_reports(self, report_date: date) -> Sequence[AbsenceReport]:
        with db_cursor(self._conn_factory) as (_, cur):
            return _select_submitted_reports(cur, report_date)

    def list_recorded_rows(self, report_date: date) -> Sequence[AbsenceRow]:
        return self.list_recorded_rows_between(report_date, report_date)

    def list_recorded_rows_between(self, start_date: date, end_date: date) -> Sequence[AbsenceRow]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                {_ROW_SELECT}
                WHERE a.absence_date BETWEEN %s AND %s AND a.status=%s AND r.status=%s
                ORDER BY a.absence_date, e.full_name, a.absence_id
                """,
                (start_date, end_date, AbsenceStatus.RECORDED.value, ReportStatus.SUBMITTED.value),
            )
            return [_to_row(r) for r in fetchall(cur)]

    def list_locked_days(
        self,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 366,
    ) -> Sequence[DayConsolidation]:
        clauses = ["c.state=%s"]
        params: list[object] = [ConsolidationState.LOCKED.value]
        if start_date is not None:
            clauses.append("c.report_date>=%s")
            params.append(start_date)
        if end_date is not None:
            clauses.append("c.report_date<=%s")
            params.append(end_date)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT c.report_date, c.state, c.approved_by, c.approved_at, u.full_name AS approved_by_name
                FROM daily_consolidations c
                LEFT JOIN users u ON u.user_id = c.approved_by
                WHERE {' AND '.join(clauses)}
                ORDER BY c.report_date DESC
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [_to_consolidation(r["report_date"], r) for r in fetchall(cur)]
