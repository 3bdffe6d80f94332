from __future__ import annotations

from datetime import timedelta

from flask import Flask, jsonify, session

from ..common.http import error_response, login_required, payload
from ..core.constants import DEFAULT_SESSION_DAYS
from ..core.exceptions import DomainError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    app.permanent_session_lifetime = timedelta(days=DEFAULT_SESSION_DAYS)

    @app.route("/auth/login", methods=["POST"], endpoint="login")
    def login():
        data = payload()
        try:
            s_user = container.auth_service.authenticate(data.get("username", ""), data.get("password", ""))
        except DomainError as e:
            return error_response(e)

        session.clear()
        session.permanent = bool(data.get("remember_me"))
        session["user_id"] = s_user.user_id
        session["name"] = s_user.full_name
        session["role"] = s_user.role.value
        session["department_ids"] = list(s_user.department_ids)
        session["can_approve"] = s_user.can_approve
        return jsonify({"ok": True, "user": _session_user()})

    @app.route("/auth/logout", methods=["POST"], endpoint="logout")
    def logout():
        session.clear()
        return jsonify({"ok": True})

    @app.route("/auth/me", methods=["GET"], endpoint="me")
    @login_required
    def me():
        return jsonify({"ok": True, "user": _session_user()})

    def _session_user() -> dict:
        return {
            "user_id": session.get("user_id"),
            "full_name": session.get("name"),
            "role": session.get("role"),
            "department_ids": session.get("department_ids", []),
            "can_approve": bool(session.get("can_approve")),
        }
