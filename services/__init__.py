"""
Business logic services.

Each service handles one domain area.
"""

from services.backend import Backend, get_backend
from services.auth_service import AuthService, get_auth_service
from services.sku_mapping_service import SKUMappingService, get_sku_mapping_service
from services.user_service import UserService, get_user_service
from services.template_service import TemplateService, get_template_service
from services.upload_history_service import UploadHistoryService, get_upload_history_service
from services.workflow_service import WorkflowService, get_workflow_service
from services.report_service import ReportService, get_report_service
from services.export_service import ExportService, get_export_service

__all__ = [
    "Backend",
    "get_backend",
    "AuthService",
    "get_auth_service",
    "SKUMappingService",
    "get_sku_mapping_service",
    "UserService",
    "get_user_service",
    "TemplateService",
    "get_template_service",
    "UploadHistoryService",
    "get_upload_history_service",
    "WorkflowService",
    "get_workflow_service",
    "ReportService",
    "get_report_service",
    "ExportService",
    "get_export_service",
]
