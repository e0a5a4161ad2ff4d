"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
    MessageResponse,
)
from models.user import (
    UserRole,
    UserStatus,
    UserResponse,
    Operator,
    UserCreate,
    UserStatusUpdate,
    PasswordResetRequest,
    UserListResponse,
    LoginRequest,
    LoginResponse,
)
from models.sku_mapping import (
    SKUMappingCreate,
    SKUMappingUpdate,
    SKUMappingResponse,
    SKUMappingListResponse,
    SKUMappingBulkUploadResponse,
)
from models.upload import (
    WorkflowState,
    UploadStatus,
    is_valid_workflow_transition,
    TemplateResponse,
    SalesFileResponse,
    AgentMappingRequest,
    WorkflowStateResponse,
    UploadHistoryResponse,
    UploadHistoryListResponse,
    DistributorSummary,
    DistributorListResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",
    "MessageResponse",
    # Users
    "UserRole",
    "UserStatus",
    "UserResponse",
    "Operator",
    "UserCreate",
    "UserStatusUpdate",
    "PasswordResetRequest",
    "UserListResponse",
    "LoginRequest",
    "LoginResponse",
    # SKU mapping
    "SKUMappingCreate",
    "SKUMappingUpdate",
    "SKUMappingResponse",
    "SKUMappingListResponse",
    "SKUMappingBulkUploadResponse",
    # Uploads
    "WorkflowState",
    "UploadStatus",
    "is_valid_workflow_transition",
    "TemplateResponse",
    "SalesFileResponse",
    "AgentMappingRequest",
    "WorkflowStateResponse",
    "UploadHistoryResponse",
    "UploadHistoryListResponse",
    "DistributorSummary",
    "DistributorListResponse",
]
