from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: an account that acts on the ledger (officer, manager, admin).

    Plain data object, no DB access.
    """

    user_id: int
    full_name: str
    username: str
    password_hash: str
    role: Role
    is_active: bool = True


@dataclass(frozen=True)
class SessionUser:
    """What we store into Flask session after login."""

    user_id: int
    full_name: str
    role: Role
    department_ids: tuple[int, ...] = ()
    can_approve: bool = False
