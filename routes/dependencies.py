"""
Shared route helpers: error conversion and the authenticated operator.
"""

from typing import Optional
from urllib.parse import quote

from fastapi import Depends
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import structlog

from models.user import Operator
from services.auth_service import get_auth_service
from exceptions import AppError, AuthenticationError, PermissionDeniedError

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# AUTH
# ===================

def get_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    return credentials.credentials


def get_current_operator(token: str = Depends(get_token)) -> Operator:
    """Operator behind the request's bearer token."""
    return get_auth_service().current_user(token)


def require_admin(operator: Operator = Depends(get_current_operator)) -> Operator:
    if not operator.is_admin:
        logger.warning("admin_required", user_id=operator.id)
        raise PermissionDeniedError()
    return operator


# ===================
# DOWNLOADS
# ===================

def attachment(content: bytes, file_name: str, media_type: str) -> Response:
    """File download response."""
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(file_name)}"},
    )
