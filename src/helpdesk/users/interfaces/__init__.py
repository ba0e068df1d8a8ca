"""
Users Interfaces Layer
======================

FastAPI routes and request-scoped dependencies for users.
"""

from helpdesk.users.interfaces.controllers import users_router
from helpdesk.users.interfaces.dependencies import (
    get_current_actor,
    get_optional_actor,
    get_user_service,
)

__all__ = [
    "users_router",
    "get_current_actor",
    "get_optional_actor",
    "get_user_service",
]
