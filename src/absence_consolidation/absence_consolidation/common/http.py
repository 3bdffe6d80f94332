from __future__ import annotations

import logging
from functools import wraps
from typing import Optional

from flask import jsonify, request, session

from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DateLockedError,
    DomainError,
    DuplicatesPresentError,
    NotFoundError,
    NothingToApproveError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first.
_ERROR_STATUS = (
    (DuplicatesPresentError, 409, "duplicates_present"),
    (DateLockedError, 409, "date_locked"),
    (ConflictError, 409, "conflict"),
    (NothingToApproveError, 422, "nothing_to_approve"),
    (NotFoundError, 404, "not_found"),
    (AuthenticationError, 401, "unauthenticated"),
    (AuthorizationError, 403, "forbidden"),
    (ValidationError, 400, "invalid"),
)


def error_response(exc: DomainError):
    status, code = 400, "error"
    for exc_type, exc_status, exc_code in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            status, code = exc_status, exc_code
            break

    body = {"ok": False, "error": code, "message": str(exc)}
    if isinstance(exc, DuplicatesPresentError):
        body["duplicates"] = [g.to_dict() for g in exc.duplicates]
    if status >= 409:
        logger.info("%s %s -> %s (%s)", request.method, request.path, status, code)
    return jsonify(body), status


def current_user_id() -> int:
    return int(session["user_id"])


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return jsonify({"ok": False, "error": "unauthenticated", "message": "Please log in to continue"}), 401
        return view(*args, **kwargs)

    return wrapper


def payload() -> dict:
    """JSON body, falling back to form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def arg(name: str, *aliases: str) -> Optional[str]:
    for key in (name, *aliases):
        value = request.args.get(key)
        if value:
            return value
    return None
