from __future__ import annotations

from datetime import date

import pytest

from conftest import DAY, E1, E_HR, E_IT, E_MAINT_2, MANAGER, OFFICER_X, OFFICER_Y
from src.absence_consolidation.absence_consolidation.core.exceptions import ValidationError
from src.absence_consolidation.absence_consolidation.ledger.model import NewAbsence


def _submit(world, officer_id, *employee_ids, on=DAY):
    return world.service.submit_report(
        officer_id=officer_id, report_date=on, entries=[NewAbsence(e) for e in employee_ids]
    )


def test_daily_view_for_empty_day(world):
    view = world.daily_view.build(DAY)

    assert view.reports == []
    assert view.duplicates == []
    assert view.is_locked is False
    assert view.kpis.total_records == 0
    assert view.kpis.unique_employees == 0


def test_daily_view_kpis_and_duplicates(world):
    _submit(world, OFFICER_X, E1, E_IT)
    _submit(world, OFFICER_Y, E1, E_HR)

    view = world.daily_view.build(DAY)

    assert len(view.reports) == 2
    assert view.kpis.total_records == 4
    assert view.kpis.unique_employees == 3
    assert view.kpis.unique_departments == 3
    assert view.kpis.by_submitter == [
        {"officer_id": OFFICER_X, "officer_name": "Xavier Officer", "reports": 1, "count": 2},
        {"officer_id": OFFICER_Y, "officer_name": "Yara Officer", "reports": 1, "count": 2},
    ]
    assert view.kpis.by_department[0] == {"dept_id": 3, "dept_name": "Maintenance", "count": 2}
    assert [g.employee_id for g in view.duplicates] == [E1]


def test_daily_view_reflects_latest_writes(world):
    _submit(world, OFFICER_X, E1)
    _submit(world, OFFICER_Y, E1)
    assert len(world.daily_view.build(DAY).duplicates) == 1

    world.resolver.resolve_duplicate(report_date=DAY, employee_id=E1, actor_id=MANAGER)
    world.gate.approve(report_date=DAY, actor_id=MANAGER)

    view = world.daily_view.build_dict("2024-05-01")
    assert view["duplicates"] == []
    assert view["kpis"]["total_records"] == 1
    assert view["consolidation"]["state"] == "LOCKED"
    assert view["consolidation"]["approved_by_name"] == "Mona Manager"


def test_daily_view_dict_is_json_ready(world):
    _submit(world, OFFICER_X, E1)
    view = world.daily_view.build_dict(DAY)

    report = view["reports"][0]
    assert report["created_by_name"] == "Xavier Officer"
    assert report["status"] == "SUBMITTED"
    assert report["absences"][0]["employee_name"] == "Eli One"
    assert report["absences"][0]["dept_name"] == "Maintenance"
    assert view["consolidation"] == {
        "report_date": "2024-05-01",
        "state": "OPEN",
        "locked": False,
        "approved_by": None,
        "approved_by_name": None,
        "approved_at": None,
    }


def test_official_report_counts_work_types_and_departments(world):
    _submit(world, OFFICER_X, E1, E_IT, on=date(2024, 5, 1))
    _submit(world, OFFICER_Y, E_HR, E_MAINT_2, on=date(2024, 5, 2))
    _submit(world, OFFICER_Y, E_HR, on=date(2024, 5, 9))

    report = world.official.build_official_report(start="2024-05-01", end="2024-05-02")

    assert [(r["date"], r["full_name"]) for r in report.rows] == [
        ("2024-05-01", "Eli One"),
        ("2024-05-01", "Ivy Tech"),
        ("2024-05-02", "Hank Human"),
        ("2024-05-02", "Mo Wrench"),
    ]
    assert report.kpis == {
        "total": 4,
        "morning": 2,
        "shifts": 2,
        "departments_count": 3,
        "top_department": "Maintenance",
        "top_department_count": 2,
    }
    assert report.rows[2]["reported_by"] == "Yara Officer"


def test_official_report_skips_cancelled_absences(world):
    report_id = _submit(world, OFFICER_X, E1)
    absence = next(a for a in world.ledger.absences.values() if a.report_id == report_id)
    world.service.cancel_absence(absence_id=absence.absence_id, actor_id=OFFICER_X)

    report = world.official.build_official_report(start=DAY, end=DAY)
    assert report.rows == []
    assert report.kpis["total"] == 0
    assert report.kpis["top_department"] == "—"


def test_official_report_rejects_inverted_range(world):
    with pytest.raises(ValidationError):
        world.official.build_official_report(start="2024-05-02", end="2024-05-01")
