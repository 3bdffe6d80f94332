from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from ..ledger.model import AbsenceReport, DayConsolidation


@dataclass(frozen=True)
class DuplicateMember:
    absence_id: int
    report_id: int
    officer_id: int
    officer_name: str
    created_at: datetime


@dataclass(frozen=True)
class DuplicateGroup:
    """RECORDED entries of one employee on one date coming from different reports.

    Derived on every read, never stored.
    """

    report_date: date
    employee_id: int
    employee_name: str
    members: tuple[DuplicateMember, ...]

    @property
    def report_ids(self) -> list[int]:
        return sorted({m.report_id for m in self.members})

    def describe(self) -> str:
        officers = ", ".join(f"once in {m.officer_name}'s report" for m in self.members)
        return f"{self.employee_name} is duplicated: {officers}"

    def to_dict(self) -> dict:
        return {
            "report_date": self.report_date.isoformat(),
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "message": self.describe(),
            "members": [
                {
                    "absence_id": m.absence_id,
                    "report_id": m.report_id,
                    "officer_id": m.officer_id,
                    "officer_name": m.officer_name,
                }
                for m in self.members
            ],
        }


@dataclass(frozen=True)
class DailyKpis:
    total_records: int
    unique_employees: int
    unique_departments: int
    by_submitter: list[dict] = field(default_factory=list)
    by_department: list[dict] = field(default_factory=list)


@dataclass(frozen=True)
class DailyView:
    report_date: date
    consolidation: DayConsolidation
    reports: list[AbsenceReport]
    kpis: DailyKpis
    duplicates: list[DuplicateGroup]

    @property
    def is_locked(self) -> bool:
        return self.consolidation.is_locked


def consolidation_to_dict(c: DayConsolidation) -> dict:
    return {
        "report_date": c.report_date.isoformat(),
        "state": c.state.value,
        "locked": c.is_locked,
        "approved_by": c.approved_by,
        "approved_by_name": c.approved_by_name,
        "approved_at": c.approved_at.strftime("%Y-%m-%d %H:%M") if c.approved_at else None,
    }
