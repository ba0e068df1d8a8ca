"""
User Domain Entities
====================

Users and the authenticated actor derived from them.
"""

from dataclasses import dataclass
from datetime import datetime

from helpdesk.config import UserRole, STAFF_ROLES


@dataclass(frozen=True)
class Actor:
    """
    The authenticated caller of a request.

    Supplied by the identity collaborator; the core only needs id and role.
    """
    id: int
    role: UserRole

    @property
    def is_staff(self) -> bool:
        """Agents and admins triage every ticket."""
        return self.role in STAFF_ROLES


@dataclass
class User:
    """Registered account. Credentials never leave the infrastructure layer."""
    id: int
    username: str
    email: str
    role: UserRole
    created_at: datetime
    updated_at: datetime

    def as_actor(self) -> Actor:
        return Actor(id=self.id, role=self.role)
