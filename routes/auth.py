"""
Auth API routes: login, logout, current operator.
"""

from fastapi import APIRouter, Depends
import structlog

from models.base import MessageResponse
from models.user import LoginRequest, LoginResponse, Operator, UserResponse
from routes.dependencies import handle_error, get_token, get_current_operator
from services.auth_service import get_auth_service

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest):
    """
    Sign in with username or email and password.

    Returns a bearer token for the Authorization header.
    """
    try:
        return get_auth_service().login(data.username, data.password)
    except Exception as e:
        return handle_error(e)


@router.post("/logout", response_model=MessageResponse)
async def logout(token: str = Depends(get_token)):
    try:
        get_auth_service().logout(token)
        return MessageResponse(message="Signed out")
    except Exception as e:
        return handle_error(e)


@router.get("/me", response_model=UserResponse)
async def me(operator: Operator = Depends(get_current_operator)):
    """Profile of the signed-in operator."""
    return operator
