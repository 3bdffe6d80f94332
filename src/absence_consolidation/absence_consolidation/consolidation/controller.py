from __future__ import annotations

from flask import Flask, jsonify

from ..common.datetime_utils import parse_iso_date
from ..common.http import arg, current_user_id, error_response, login_required, payload
from ..core.exceptions import DomainError, UnauthorizedError
from ..container import Container
from .model import consolidation_to_dict


def register(app: Flask, container: Container) -> None:
    def _require_approver() -> None:
        if not container.approval_policy.has_approval_capability(current_user_id()):
            raise UnauthorizedError("Only managers can do this")

    @app.route("/consolidation/daily", methods=["GET"], endpoint="consolidation_daily")
    @login_required
    def daily():
        try:
            view = container.daily_view.build_dict(parse_iso_date(arg("date") or ""))
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, **view})

    @app.route("/consolidation/date-locked", methods=["GET"], endpoint="consolidation_date_locked")
    @login_required
    def date_locked():
        try:
            d = parse_iso_date(arg("date") or "")
            locked = container.gate.is_locked(d)
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, "date": d.isoformat(), "locked": locked})

    @app.route("/consolidation/duplicates", methods=["GET"], endpoint="consolidation_duplicates")
    @login_required
    def duplicates():
        try:
            _require_approver()
            groups = container.detector.find_duplicates(parse_iso_date(arg("date") or ""))
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, "duplicates": [g.to_dict() for g in groups]})

    @app.route("/consolidation/resolve-duplicate", methods=["POST"], endpoint="consolidation_resolve_duplicate")
    @login_required
    def resolve_duplicate():
        data = payload()
        try:
            _require_approver()
            result = container.resolver.resolve_duplicate(
                report_date=parse_iso_date(data.get("date") or ""),
                employee_id=data.get("employee_id"),
                actor_id=current_user_id(),
            )
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, **result})

    @app.route("/consolidation/approve", methods=["POST"], endpoint="consolidation_approve")
    @login_required
    def approve():
        data = payload()
        try:
            state = container.gate.approve(report_date=parse_iso_date(data.get("date") or ""), actor_id=current_user_id())
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, "consolidation": consolidation_to_dict(state)})

    @app.route("/consolidation/unapprove", methods=["POST"], endpoint="consolidation_unapprove")
    @login_required
    def unapprove():
        data = payload()
        try:
            state = container.gate.unapprove(report_date=parse_iso_date(data.get("date") or ""), actor_id=current_user_id())
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, "consolidation": consolidation_to_dict(state)})

    @app.route("/consolidation/archive", methods=["GET"], endpoint="consolidation_archive")
    @login_required
    def archive():
        try:
            start = arg("from", "start")
            end = arg("to", "end")
            days = container.gate.list_locked_days(
                start_date=parse_iso_date(start) if start else None,
                end_date=parse_iso_date(end) if end else None,
            )
        except DomainError as e:
            return error_response(e)
        return jsonify({"ok": True, "days": [consolidation_to_dict(c) for c in days]})
