"""
User management API routes (admin only).
"""

from fastapi import APIRouter, Depends
import structlog

from models.base import MessageResponse
from models.user import (
    Operator,
    UserCreate,
    UserResponse,
    UserListResponse,
    UserStatusUpdate,
    PasswordResetRequest,
)
from routes.dependencies import handle_error, require_admin
from services.user_service import get_user_service

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(admin: Operator = Depends(require_admin)):
    """All operator accounts, newest first."""
    try:
        users = get_user_service().get_all()
        return UserListResponse(data=users, total=len(users))
    except Exception as e:
        return handle_error(e)


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(data: UserCreate, admin: Operator = Depends(require_admin)):
    """Create login credentials and a profile."""
    try:
        return get_user_service().create(data)
    except Exception as e:
        return handle_error(e)


@router.patch("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: str,
    data: UserStatusUpdate,
    admin: Operator = Depends(require_admin),
):
    """Enable or disable an account. Disabled accounts cannot sign in."""
    try:
        return get_user_service().set_status(user_id, data.status, acting_user_id=admin.id)
    except Exception as e:
        return handle_error(e)


@router.post("/{user_id}/reset-password", response_model=MessageResponse)
async def reset_password(
    user_id: str,
    data: PasswordResetRequest,
    admin: Operator = Depends(require_admin),
):
    try:
        get_user_service().reset_password(user_id, data.new_password)
        return MessageResponse(message="Password updated")
    except Exception as e:
        return handle_error(e)
