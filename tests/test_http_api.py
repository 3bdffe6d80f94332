from __future__ import annotations

from dataclasses import replace

import pytest
from werkzeug.security import generate_password_hash

from conftest import ADMIN, E1, E_HR, E_IT, E_MAINT_2, OFFICER_X, build_world
from src.absence_consolidation.absence_consolidation.container import wire_container
from src.absence_consolidation.absence_consolidation.main import create_app


@pytest.fixture
def api():
    w = build_world()
    hashed = generate_password_hash("secret")
    for user_id, user in list(w.users.users.items()):
        w.users.users[user_id] = replace(user, password_hash=hashed)

    container = wire_container(users_repo=w.users, ledger_repo=w.ledger, audit_sink=w.audit)
    app = create_app(container, settings_module="config.testing")
    w.app = app
    return w


def _login(app, username):
    client = app.test_client()
    resp = client.post("/auth/login", json={"username": username, "password": "secret"})
    assert resp.status_code == 200, resp.get_json()
    return client


def _submit(client, *employee_ids, on="2024-05-01"):
    return client.post(
        "/absence-reports",
        json={"report_date": on, "entries": [{"employee_id": e} for e in employee_ids]},
    )


def test_login_and_me(api):
    client = _login(api.app, "officer_x")
    body = client.get("/auth/me").get_json()

    assert body["user"]["user_id"] == OFFICER_X
    assert body["user"]["role"] == "officer"
    assert body["user"]["department_ids"] == [1, 3]
    assert body["user"]["can_approve"] is False


def test_login_wrong_password(api):
    resp = api.app.test_client().post("/auth/login", json={"username": "manager", "password": "nope"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "unauthenticated"


def test_endpoints_require_login(api):
    client = api.app.test_client()
    assert client.get("/auth/me").status_code == 401
    assert client.get("/consolidation/daily?date=2024-05-01").status_code == 401
    assert _submit(client, E1).status_code == 401


def test_logout_clears_session(api):
    client = _login(api.app, "manager")
    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_full_consolidation_flow(api):
    officer_x = _login(api.app, "officer_x")
    officer_y = _login(api.app, "officer_y")
    manager = _login(api.app, "manager")

    resp = _submit(officer_x, E1, E_IT)
    assert resp.status_code == 201
    report_x = resp.get_json()["report_id"]
    assert _submit(officer_y, E1).status_code == 201

    resp = manager.post("/consolidation/approve", json={"date": "2024-05-01"})
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["error"] == "duplicates_present"
    assert [g["employee_id"] for g in body["duplicates"]] == [E1]

    resp = manager.post("/consolidation/resolve-duplicate", json={"date": "2024-05-01", "employee_id": E1})
    assert resp.get_json()["removed"] == 1

    resp = manager.post("/consolidation/approve", json={"date": "2024-05-01"})
    assert resp.status_code == 200
    assert resp.get_json()["consolidation"]["locked"] is True
    assert officer_x.get("/consolidation/date-locked?date=2024-05-01").get_json()["locked"] is True

    resp = officer_x.post(f"/absence-reports/{report_x}/absences", json={"date": "2024-05-01", "employee_id": E_MAINT_2})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "date_locked"

    assert manager.post("/consolidation/unapprove", json={"date": "2024-05-01"}).status_code == 200
    resp = officer_x.post(f"/absence-reports/{report_x}/absences", json={"date": "2024-05-01", "employee_id": E_MAINT_2})
    assert resp.status_code == 201


def test_officer_cannot_use_manager_endpoints(api):
    officer = _login(api.app, "officer_x")
    _submit(officer, E1)

    assert officer.get("/consolidation/duplicates?date=2024-05-01").status_code == 403
    assert officer.post("/consolidation/resolve-duplicate", json={"date": "2024-05-01", "employee_id": E1}).status_code == 403
    resp = officer.post("/consolidation/approve", json={"date": "2024-05-01"})
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "forbidden"


def test_approve_empty_day(api):
    manager = _login(api.app, "manager")
    resp = manager.post("/consolidation/approve", json={"date": "2024-05-01"})
    assert resp.status_code == 422
    assert resp.get_json()["error"] == "nothing_to_approve"


def test_bad_input(api):
    officer = _login(api.app, "officer_x")
    assert officer.get("/consolidation/daily?date=05/01/2024").status_code == 400
    assert _submit(officer, E_HR).status_code == 403
    assert _submit(officer, 999).status_code == 404
    resp = officer.post("/absence-reports", json={"report_date": "2024-05-01", "entries": "101"})
    assert resp.status_code == 400

    resp = officer.post("/absence-reports", json={"report_date": 20240501, "entries": [E1]})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid"

    for reason in (7, "x" * 256):
        resp = officer.post(
            "/absence-reports", json={"report_date": "2024-05-01", "entries": [{"employee_id": E1, "reason": reason}]}
        )
        assert resp.status_code == 400, reason

    resp = _login(api.app, "manager").post("/consolidation/approve", json={"date": ["2024-05-01"]})
    assert resp.status_code == 400
    assert api.ledger.absences == {}


def test_cancel_absence_endpoint(api):
    officer = _login(api.app, "officer_x")
    _submit(officer, E1)
    absence_id = next(iter(api.ledger.absences))

    assert officer.post(f"/absences/{absence_id}/cancel").status_code == 200
    assert officer.post(f"/absences/{absence_id}/cancel").status_code == 400
    assert officer.post("/absences/9999/cancel").status_code == 404


def test_read_endpoints(api):
    officer_x = _login(api.app, "officer_x")
    officer_y = _login(api.app, "officer_y")
    manager = _login(api.app, "manager")
    _submit(officer_x, E1)
    _submit(officer_y, E1, E_HR)

    daily = manager.get("/consolidation/daily?date=2024-05-01").get_json()
    assert daily["kpis"]["total_records"] == 3
    assert len(daily["duplicates"]) == 1

    by_date = officer_x.get("/absence-reports/by-date?date=2024-05-01").get_json()
    assert [r["created_by"] for r in by_date["reports"]] == [OFFICER_X]
    by_date = manager.get("/absence-reports/by-date?date=2024-05-01").get_json()
    assert len(by_date["reports"]) == 2

    check = officer_x.get("/absence-reports/validate?employee_id=101&date=2024-05-01").get_json()
    assert check["can_add"] is True
    assert "Yara Officer" in check["message"]

    dups = manager.get("/consolidation/duplicates?date=2024-05-01").get_json()
    assert dups["duplicates"][0]["employee_name"] == "Eli One"

    official = manager.get("/absence-reports/official-report?from=2024-05-01&to=2024-05-31").get_json()
    assert official["kpis"]["total"] == 3


def test_archive_lists_locked_days(api):
    officer = _login(api.app, "officer_x")
    admin = _login(api.app, "admin")
    _submit(officer, E1, on="2024-05-01")
    _submit(officer, E1, on="2024-05-02")
    admin.post("/consolidation/approve", json={"date": "2024-05-01"})
    admin.post("/consolidation/approve", json={"date": "2024-05-02"})

    days = admin.get("/consolidation/archive?from=2024-05-01&to=2024-05-31").get_json()["days"]
    assert [d["report_date"] for d in days] == ["2024-05-02", "2024-05-01"]
    assert days[0]["approved_by"] == ADMIN
    assert admin.get("/consolidation/archive?from=2024-05-31&to=2024-05-01").status_code == 400


def test_officer_only_sees_own_reports_by_date(api):
    officer_x = _login(api.app, "officer_x")
    officer_y = _login(api.app, "officer_y")
    _submit(officer_x, E1)

    assert officer_y.get("/absence-reports/by-date?date=2024-05-01").get_json()["reports"] == []
    assert len(officer_x.get("/absence-reports/by-date?date=2024-05-01").get_json()["reports"]) == 1


def test_employee_picker(api):
    officer = _login(api.app, "officer_x")

    body = officer.get("/absence-reports/employees").get_json()
    assert [e["employee_id"] for e in body["employees"]] == [E1, E_IT, E_MAINT_2]

    body = officer.get("/absence-reports/employees?search=electric").get_json()
    assert body["employees"] == [
        {
            "employee_id": E1,
            "full_name": "Eli One",
            "job_title": "Electrician",
            "work_type": "MORNING",
            "dept_id": 3,
            "dept_name": "Maintenance",
        }
    ]

    assert officer.get("/absence-reports/employees?limit=0").status_code == 400
    assert _login(api.app, "officer_none").get("/absence-reports/employees").status_code == 403
