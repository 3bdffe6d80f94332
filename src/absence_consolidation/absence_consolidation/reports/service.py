from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..common.datetime_utils import as_report_date
from ..core.constants import NO_NAME
from ..core.enums import WorkType
from ..core.exceptions import ValidationError
from ..ledger.repository import LedgerRepository


@dataclass(frozen=True)
class OfficialReport:
    start_date: date
    end_date: date
    rows: list[dict]
    kpis: dict


class OfficialReportService:
    """Official absence sheet for a period: every RECORDED absence plus headline KPIs."""

    def __init__(self, ledger: LedgerRepository):
        self._ledger = ledger

    def build_official_report(self, *, start, end) -> OfficialReport:
        start_date = as_report_date(start)
        end_date = as_report_date(end)
        if end_date < start_date:
            raise ValidationError("End date must be on or after start date")

        query_rows = self._ledger.list_recorded_rows_between(start_date, end_date)

        out_rows: list[dict] = []
        by_dept: dict[str, int] = {}
        dept_ids: set[int] = set()
        morning = shifts = 0

        for r in query_rows:
            dept_name = r.dept_name or NO_NAME
            out_rows.append(
                {
                    "absence_id": r.absence_id,
                    "date": r.absence_date.strftime("%Y-%m-%d"),
                    "full_name": r.employee_name,
                    "job_title": r.job_title or NO_NAME,
                    "dept_name": dept_name,
                    "work_type": r.work_type.value,
                    "reason": r.reason or "",
                    "reported_by": r.officer_name,
                }
            )

            by_dept[dept_name] = by_dept.get(dept_name, 0) + 1
            if r.dept_id is not None:
                dept_ids.add(r.dept_id)
            if r.work_type == WorkType.SHIFTS:
                shifts += 1
            else:
                morning += 1

        out_rows.sort(key=lambda x: (x["date"], x["full_name"]))

        top_department, top_count = NO_NAME, 0
        for name, count in sorted(by_dept.items()):
            if count > top_count:
                top_department, top_count = name, count

        kpis = {
            "total": len(out_rows),
            "morning": morning,
            "shifts": shifts,
            "departments_count": len(dept_ids),
            "top_department": top_department,
            "top_department_count": top_count,
        }
        return OfficialReport(start_date=start_date, end_date=end_date, rows=out_rows, kpis=kpis)
