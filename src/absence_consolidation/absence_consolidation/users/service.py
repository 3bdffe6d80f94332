from __future__ import annotations

import logging
from typing import Protocol

from werkzeug.security import check_password_hash

from ..common.validators import require_non_empty
from ..core.enums import Role
from ..core.exceptions import AuthenticationError
from .model import SessionUser
from .repository import UserRepository

logger = logging.getLogger(__name__)

APPROVER_ROLES = frozenset({Role.ADMIN, Role.MANAGER})


class ApprovalPolicy(Protocol):
    """Authorization collaborator consulted before locking or unlocking a date."""

    def has_approval_capability(self, actor_id: int) -> bool:
        raise NotImplementedError


class RoleApprovalPolicy:
    """Active admins and managers may approve/unapprove a date's consolidation."""

    def __init__(self, users: UserRepository):
        self._users = users

    def has_approval_capability(self, actor_id: int) -> bool:
        user = self._users.get_by_id(int(actor_id))
        return bool(user and user.is_active and user.role in APPROVER_ROLES)


class AuthService:
    """Use case: authenticate user (login)."""

    def __init__(self, users: UserRepository, approval_policy: ApprovalPolicy | None = None):
        self._users = users
        self._approval_policy = approval_policy or RoleApprovalPolicy(users)

    def authenticate(self, username: str, password: str) -> SessionUser:
        username = require_non_empty(username, "Username")
        user = self._users.get_by_username(username)
        if not user or not user.is_active:
            raise AuthenticationError("Wrong username or password")

        ok = False
        if isinstance(password, str):
            try:
                ok = check_password_hash(user.password_hash, password)
            except ValueError:
                # placeholder hashes like 'CHANGE_ME' are not parseable
                ok = False

        if not ok:
            logger.info("Rejected login for %s", username)
            raise AuthenticationError("Wrong username or password")

        department_ids: tuple[int, ...] = ()
        if user.role == Role.OFFICER:
            department_ids = tuple(self._users.list_department_ids(user.user_id))

        return SessionUser(
            user_id=user.user_id,
            full_name=user.full_name,
            role=user.role,
            department_ids=department_ids,
            can_approve=self._approval_policy.has_approval_capability(user.user_id),
        )
