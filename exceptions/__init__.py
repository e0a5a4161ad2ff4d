"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # External collaborators
    StorageError,
    NetworkError,

    # Spreadsheet parsing
    ExcelParseError,
    HeaderNotFoundError,
    EmptyInputError,

    # Upload workflow
    IncompleteMappingError,
    InvalidStatusTransitionError,
    WorkflowBusyError,

    # Not found
    TemplateNotFoundError,
    UploadNotFoundError,
    SKUMappingNotFoundError,
    UserNotFoundError,

    # Auth
    AuthenticationError,
    PermissionDeniedError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # External collaborators
    "StorageError",
    "NetworkError",

    # Spreadsheet parsing
    "ExcelParseError",
    "HeaderNotFoundError",
    "EmptyInputError",

    # Upload workflow
    "IncompleteMappingError",
    "InvalidStatusTransitionError",
    "WorkflowBusyError",

    # Not found
    "TemplateNotFoundError",
    "UploadNotFoundError",
    "SKUMappingNotFoundError",
    "UserNotFoundError",

    # Auth
    "AuthenticationError",
    "PermissionDeniedError",
]
