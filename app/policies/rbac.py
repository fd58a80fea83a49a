#app/policies/rbac.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Set

from app.models.enums import UserRole


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: UserRole
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


# roles allowed to reach mutating / staff-only review routes
STAFF_ROLES: Set[UserRole] = {UserRole.EMPLOYEE, UserRole.ADMIN}
