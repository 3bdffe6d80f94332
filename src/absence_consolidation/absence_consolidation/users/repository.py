from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import User


class UserRepository(Protocol):
    """Repository interface for accounts.

    Note (DIP): services depend on this interface, not on a concrete DB.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_username(self, username: str) -> Optional[User]:
        raise NotImplementedError

    def list_department_ids(self, user_id: int) -> Sequence[int]:
        """Departments an officer is assigned to report on."""

        raise NotImplementedError
