"""
User and session schemas.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from enum import Enum

from models.base import BaseSchema, TimestampMixin


class UserRole(str, Enum):
    """Operator roles."""
    ADMIN = "admin"
    USER = "user"


class UserStatus(str, Enum):
    """Account status. Disabled accounts cannot sign in."""
    ACTIVE = "active"
    DISABLED = "disabled"


class UserResponse(BaseSchema, TimestampMixin):
    """User profile row."""
    id: str
    username: str
    role: UserRole = UserRole.USER
    status: UserStatus = UserStatus.ACTIVE

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


# The authenticated operator handed to services
Operator = UserResponse


class UserCreate(BaseSchema):
    """
    Create an operator account (admin only).

    Required: email, password
    Optional: username (defaults to the part of the email before '@'), role
    """

    email: str = Field(
        ...,
        min_length=3,
        max_length=255,
        pattern=r"^[^@\s]+@[^@\s]+$",
        description="Login email",
        examples=["north@distributor.example"]
    )
    password: str = Field(
        ...,
        min_length=6,
        max_length=128,
        description="Initial password"
    )
    username: Optional[str] = Field(
        None,
        min_length=1,
        max_length=50,
        description="Display name"
    )
    role: UserRole = Field(
        UserRole.USER,
        description="Operator role"
    )

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: str) -> str:
        """Emails are case-insensitive, stored lowercase."""
        return v.lower()

    @property
    def display_name(self) -> str:
        return self.username or self.email.split("@")[0]


class UserStatusUpdate(BaseSchema):
    """Enable or disable an account."""
    status: UserStatus


class PasswordResetRequest(BaseSchema):
    """Admin-initiated password reset."""
    new_password: str = Field(..., min_length=6, max_length=128)


class UserListResponse(BaseModel):
    """List of users."""
    data: list[UserResponse]
    total: int


# ===================
# AUTH
# ===================

class LoginRequest(BaseSchema):
    """Credentials; identifier is a username or an email address."""
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class LoginResponse(BaseModel):
    """Bearer token plus the signed-in profile."""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
    expires_in: Optional[int] = None
