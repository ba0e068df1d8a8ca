"""
Users Application Layer
=======================

Services, repository interfaces and DTOs for user management.
"""

from helpdesk.users.application.dto import (
    MessageResponse,
    PasswordChangeRequest,
    UserProfileUpdateRequest,
    UserRegisterRequest,
    UserRoleUpdateRequest,
    UserResponse,
    UserListResponse,
)
from helpdesk.users.application.services import (
    UserService,
    IUserRepository,
    IPasswordHasher,
)

__all__ = [
    # DTOs
    "MessageResponse",
    "PasswordChangeRequest",
    "UserProfileUpdateRequest",
    "UserRegisterRequest",
    "UserRoleUpdateRequest",
    "UserResponse",
    "UserListResponse",
    # Services
    "UserService",
    # Interfaces
    "IUserRepository",
    "IPasswordHasher",
]
