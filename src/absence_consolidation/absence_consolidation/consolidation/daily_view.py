from __future__ import annotations

from ..common.datetime_utils import as_report_date
from ..core.constants import NO_NAME
from ..ledger.repository import LedgerRepository
from .detector import group_duplicates
from .model import DailyKpis, DailyView, consolidation_to_dict


class DailyViewBuilder:
    """Read-side aggregate for one date: reports, KPIs, lock state, duplicates.

    Nothing is cached; every call reflects the latest committed state.
    """

    def __init__(self, ledger: LedgerRepository):
        self._ledger = ledger

    def build(self, report_date) -> DailyView:
        d = as_report_date(report_date)
        snapshot = self._ledger.get_day_snapshot(d)
        consolidation = snapshot.consolidation
        reports = list(snapshot.reports)

        # Duplicates come from the same snapshot as the reports shown next to them.
        rows = [row for report in reports for row in report.absences]

        by_submitter: dict[int, dict] = {}
        for report in reports:
            s = by_submitter.setdefault(
                report.created_by,
                {"officer_id": report.created_by, "officer_name": report.created_by_name, "reports": 0, "count": 0},
            )
            s["reports"] += 1
            s["count"] += len(report.absences)

        by_department: dict[object, dict] = {}
        for row in rows:
            dept = by_department.setdefault(
                row.dept_id,
                {"dept_id": row.dept_id, "dept_name": row.dept_name or NO_NAME, "count": 0},
            )
            dept["count"] += 1

        kpis = DailyKpis(
            total_records=len(rows),
            unique_employees=len({r.employee_id for r in rows}),
            unique_departments=len({r.dept_id for r in rows if r.dept_id is not None}),
            by_submitter=sorted(by_submitter.values(), key=lambda x: x["officer_name"]),
            by_department=sorted(by_department.values(), key=lambda x: (-x["count"], x["dept_name"])),
        )

        return DailyView(
            report_date=d,
            consolidation=consolidation,
            reports=sorted(reports, key=lambda r: (r.created_by_name, r.created_at)),
            kpis=kpis,
            duplicates=group_duplicates(rows),
        )

    def build_dict(self, report_date) -> dict:
        view = self.build(report_date)
        return {
            "report_date": view.report_date.isoformat(),
            "consolidation": consolidation_to_dict(view.consolidation),
            "reports": [
                {
                    "report_id": r.report_id,
                    "created_by": r.created_by,
                    "created_by_name": r.created_by_name,
                    "created_at": r.created_at.strftime("%Y-%m-%d %H:%M"),
                    "status": r.status.value,
                    "absences": [
                        {
                            "absence_id": a.absence_id,
                            "employee_id": a.employee_id,
                            "employee_name": a.employee_name,
                            "job_title": a.job_title or "",
                            "work_type": a.work_type.value,
                            "dept_name": a.dept_name or NO_NAME,
                            "reason": a.reason or "",
                        }
                        for a in r.absences
                    ],
                }
                for r in view.reports
            ],
            "kpis": {
                "total_records": view.kpis.total_records,
                "unique_employees": view.kpis.unique_employees,
                "unique_departments": view.kpis.unique_departments,
                "by_submitter": view.kpis.by_submitter,
                "by_department": view.kpis.by_department,
            },
            "duplicates": [g.to_dict() for g in view.duplicates],
        }
