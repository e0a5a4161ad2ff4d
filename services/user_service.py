"""
User administration: list, create, enable/disable, reset password.
"""

from datetime import datetime, timezone
from typing import Optional
import structlog

from models.user import UserCreate, UserResponse, UserStatus
from exceptions import UserNotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class UserService:
    """Profiles in `users` plus credentials through the auth provider."""

    def __init__(self, backend=None):
        self._backend = backend

    @property
    def backend(self):
        if self._backend is None:
            from services.backend import get_backend
            return get_backend()
        return self._backend

    def get_all(self) -> list[UserResponse]:
        rows = self.backend.users.list(order_by="created_at", descending=True)
        return [UserResponse(**row) for row in rows]

    def get_by_id(self, user_id: str) -> UserResponse:
        row = self.backend.users.get(user_id)
        if row is None:
            raise UserNotFoundError(user_id)
        return UserResponse(**row)

    def create(self, data: UserCreate) -> UserResponse:
        """
        Create login credentials and the matching profile row.

        Raises:
            ConflictError: Account already exists (demo mode)
            ExternalServiceError: Auth provider refused
        """
        logger.info("creating_user", email=data.email, role=data.role.value)

        user_id = self.backend.auth.create_account(data.email, data.password)

        # Supabase may already have created the profile through a trigger
        existing = self.backend.users.get(user_id)
        if existing:
            row = self.backend.users.update(user_id, {
                "username": data.display_name,
                "role": data.role.value,
            })
        else:
            row = self.backend.users.insert({
                "id": user_id,
                "username": data.display_name,
                "role": data.role.value,
                "status": UserStatus.ACTIVE.value,
            })[0]

        logger.info("user_created", user_id=user_id)
        return UserResponse(**row)

    def set_status(self, user_id: str, status: UserStatus, acting_user_id: Optional[str] = None) -> UserResponse:
        """Enable or disable an account. Admins cannot disable themselves."""
        self.get_by_id(user_id)

        if acting_user_id == user_id and status == UserStatus.DISABLED:
            raise ValidationError("You cannot disable your own account", code="CANNOT_DISABLE_SELF")

        row = self.backend.users.update(user_id, {
            "status": status.value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        })
        logger.info("user_status_changed", user_id=user_id, status=status.value)
        return UserResponse(**row)

    def reset_password(self, user_id: str, new_password: str) -> None:
        self.get_by_id(user_id)
        self.backend.auth.reset_password(user_id, new_password)
        logger.info("user_password_reset", user_id=user_id)


# Singleton instance
_user_service: Optional[UserService] = None


def get_user_service() -> UserService:
    """Get or create UserService instance."""
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
