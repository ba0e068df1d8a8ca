"""
Users Application DTOs
======================

Pydantic request/response models for the users API.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

UserRoleStr = Literal["user", "agent", "admin"]


class UserRegisterRequest(BaseModel):
    """Request model for registration."""
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRoleStr = Field(default="user")


class UserProfileUpdateRequest(BaseModel):
    """Request model for changing one's own username and/or email."""
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    email: Optional[EmailStr] = None


class PasswordChangeRequest(BaseModel):
    """Request model for password changes."""
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)


class MessageResponse(BaseModel):
    """Plain acknowledgement."""
    message: str


class UserRoleUpdateRequest(BaseModel):
    """Request model for role changes."""
    role: UserRoleStr


class UserResponse(BaseModel):
    """Public view of a user (no credentials)."""
    id: int
    username: str
    email: str
    role: UserRoleStr
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserListResponse(BaseModel):
    """Paged user listing."""
    users: List[UserResponse]
    limit: int
    offset: int
    count: int
