"""
Users Infrastructure Layer
==========================
"""

from helpdesk.users.infrastructure.models import UserModel
from helpdesk.users.infrastructure.repositories import SQLAlchemyUserRepository
from helpdesk.users.infrastructure.security import PasslibPasswordHasher

__all__ = [
    "UserModel",
    "SQLAlchemyUserRepository",
    "PasslibPasswordHasher",
]
