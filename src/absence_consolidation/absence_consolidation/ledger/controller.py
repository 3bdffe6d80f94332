from __future__ import annotations

from flask import Flask, jsonify

from ..common.datetime_utils import parse_iso_date
from ..common.http import arg, current_user_id, error_response, login_required, payload
from ..core.exceptions import DomainError, ValidationError
from ..container import Container
from .model import AbsenceReport, EmployeeRef, NewAbsence


def _report_to_dict(r: AbsenceReport) -> dict:
    return {
        "report_id": r.report_id,
        "report_date": r.report_date.isoformat(),
        "status": r.status.value,
        "created_by": r.created_by,
        "created_by_name": r.created_by_name,
        "created_at": r.created_at.strftime("%Y-%m-%d %H:%M"),
        "absences": [
            {
                "absence_id": a.absence_id,
                "employee_id": a.employee_id,
                "employee_name": a.employee_name,
                "dept_name": a.dept_name,
                "work_type": a.work_type.value,
                "reason": a.reason or "",
            }
            for a in r.absences
        ],
    }


def _employee_to_dict(e: EmployeeRef) -> dict:
    return {
        "employee_id": e.employee_id,
        "full_name": e.full_name,
        "job_title": e.job_title or "",
        "work_type": e.work_type.value,
        "dept_id": e.dept_id,
        "dept_name": e.dept_name,
    }


def _entries(raw) -> list[NewAbsence]:
    if not isinstance(raw, list):
        raise ValidationError("entries must be a list")
    entries = []
    for item in raw:
        if isinstance(item, dict):
            entries.append(NewAbsence(employee_id=item.get("employee_id"), reason=item.get("reason")))
        else:
            entries.append(NewAbsence(employee_id=item))
    return entries


def register(app: Flask, container: Container) -> None:
    @app.route("/absence-reports", methods=["POST"], endpoint="submit_absence_report")
    @login_required
    def submit_report():
        data = payload()
        try:
            report_id = container.ledger_service.submit_report(
                officer_id=current_user_id(),
                report_date=parse_iso_date(data.get("report_date") or data.get("date") or ""),
                entries=_entries(data.get("entries", [])),
            )
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, "report_id": report_id}), 201

    @app.route("/absence-reports/<int:report_id>/absences", methods=["POST"], endpoint="add_absence")
    @login_required
    def add_absence(report_id: int):
        data = payload()
        try:
            absence_id = container.ledger_service.record_absence(
                employee_id=data.get("employee_id"),
                report_date=parse_iso_date(data.get("report_date") or data.get("date") or ""),
                report_id=report_id,
                actor_id=current_user_id(),
                reason=data.get("reason"),
            )
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, "absence_id": absence_id}), 201

    @app.route("/absences/<int:absence_id>/cancel", methods=["POST"], endpoint="cancel_absence")
    @login_required
    def cancel_absence(absence_id: int):
        try:
            container.ledger_service.cancel_absence(absence_id=absence_id, actor_id=current_user_id())
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True})

    @app.route("/absence-reports/validate", methods=["GET"], endpoint="validate_absence")
    @login_required
    def validate():
        try:
            result = container.ledger_service.check_can_record(
                employee_id=arg("employee_id", "employeeId"),
                report_date=parse_iso_date(arg("date") or ""),
            )
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, **result})

    @app.route("/absence-reports/by-date", methods=["GET"], endpoint="reports_by_date")
    @login_required
    def reports_by_date():
        try:
            reports = container.ledger_service.reports_for_date(
                parse_iso_date(arg("date") or ""), viewer_id=current_user_id()
            )
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, "reports": [_report_to_dict(r) for r in reports]})

    @app.route("/absence-reports/employees", methods=["GET"], endpoint="employees_for_officer")
    @login_required
    def employees_for_officer():
        try:
            employees = container.ledger_service.list_employees_for_officer(
                officer_id=current_user_id(),
                search=arg("search", "q"),
                limit=arg("limit"),
            )
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, "employees": [_employee_to_dict(e) for e in employees]})

    @app.route("/absence-reports/official-report", methods=["GET"], endpoint="official_report")
    @login_required
    def official_report():
        try:
            report = container.official_report_service.build_official_report(
                start=parse_iso_date(arg("from", "start") or ""),
                end=parse_iso_date(arg("to", "end") or ""),
            )
        except DomainError as e:
            return error_response(e)
        return jsonify(
            {
                "ok": True,
                "from": report.start_date.isoformat(),
                "to": report.end_date.isoformat(),
                "absences": report.rows,
                "kpis": report.kpis,
            }
        )
