"""
Custom exception classes for the application.

Every error reported to an operator is an AppError subclass carrying a
stable code, a human-readable message and an HTTP status.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "HEADER_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with current state (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# EXTERNAL COLLABORATORS
# ===================

class StorageError(ExternalServiceError):
    """File storage upload/download/remove failed."""

    def __init__(self, operation: str, path: str, message: str):
        super().__init__(
            service="storage",
            code="STORAGE_ERROR",
            message=f"Storage {operation} failed for {path}: {message}",
            details={"operation": operation, "path": path}
        )


class NetworkError(ExternalServiceError):
    """Remote backend unreachable."""

    def __init__(self, service: str, message: str):
        super().__init__(
            service=service,
            code="NETWORK_ERROR",
            message=message
        )


# ===================
# SPREADSHEET PARSING ERRORS
# ===================

class ExcelParseError(ValidationError):
    """File could not be read as a spreadsheet."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="EXCEL_PARSE_ERROR",
            message=message,
            details=details
        )


class HeaderNotFoundError(ValidationError):
    """No row in the scan window carries every required column."""

    def __init__(self, missing: list[str], scanned_rows: int, file_kind: str = "file"):
        super().__init__(
            code="HEADER_NOT_FOUND",
            message=(
                f"Could not find header row in {file_kind}. "
                f"Missing columns: {', '.join(missing)}"
            ),
            details={"missing_columns": missing, "scanned_rows": scanned_rows}
        )
        self.missing = missing


class EmptyInputError(ValidationError):
    """No usable data rows left after filtering."""

    def __init__(self, file_kind: str = "file"):
        super().__init__(
            code="EMPTY_INPUT",
            message=f"{file_kind[:1].upper()}{file_kind[1:]} is empty or invalid",
            details={"file_kind": file_kind}
        )


# ===================
# WORKFLOW ERRORS
# ===================

class IncompleteMappingError(ValidationError):
    """Some agent names have no surveyor assigned."""

    def __init__(self, unassigned: list[str]):
        super().__init__(
            code="INCOMPLETE_MAPPING",
            message="Please map all DS Names to SURVEYOR",
            details={"unassigned_agents": unassigned}
        )
        self.unassigned = unassigned


class InvalidStatusTransitionError(ValidationError):
    """Invalid workflow state transition."""

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition from {current_status} to {new_status}",
            details={
                "current_status": current_status,
                "new_status": new_status,
            }
        )


class WorkflowBusyError(ConflictError):
    """A pipeline run is already in flight for this operator."""

    def __init__(self, user_id: str):
        super().__init__(
            code="WORKFLOW_BUSY",
            message="An upload is already being processed. Please wait for it to finish.",
            details={"user_id": user_id}
        )


# ===================
# NOT FOUND ERRORS
# ===================

class TemplateNotFoundError(NotFoundError):
    """Operator has no template on file."""

    def __init__(self, user_id: str):
        super().__init__(
            resource="Template",
            identifier=user_id,
            code="TEMPLATE_NOT_FOUND"
        )
        self.message = "Please upload a template first"


class UploadNotFoundError(NotFoundError):
    """Upload history entry not found."""

    def __init__(self, upload_id: str):
        super().__init__(
            resource="Upload",
            identifier=upload_id,
            code="UPLOAD_NOT_FOUND"
        )


class SKUMappingNotFoundError(NotFoundError):
    """SKU mapping row not found."""

    def __init__(self, mapping_id: str):
        super().__init__(
            resource="SKU mapping",
            identifier=mapping_id,
            code="SKU_MAPPING_NOT_FOUND"
        )


class UserNotFoundError(NotFoundError):
    """User profile not found."""

    def __init__(self, user_id: str):
        super().__init__(
            resource="User",
            identifier=user_id,
            code="USER_NOT_FOUND"
        )


# ===================
# AUTH ERRORS
# ===================

class AuthenticationError(AppError):
    """Missing, invalid or expired credentials (401)."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(
            code="AUTHENTICATION_FAILED",
            message=message,
            status_code=401
        )


class PermissionDeniedError(AppError):
    """Authenticated, but not allowed (403)."""

    def __init__(self, message: str = "Admin access required"):
        super().__init__(
            code="PERMISSION_DENIED",
            message=message,
            status_code=403
        )
