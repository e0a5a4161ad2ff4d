"""
Distributor report API routes (admin only).
"""

from fastapi import APIRouter, Depends
import structlog

from models.upload import DistributorListResponse, UploadHistoryListResponse
from models.user import Operator
from routes.dependencies import handle_error, require_admin, attachment
from services.export_service import XLSX_MEDIA_TYPE
from services.report_service import get_report_service

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/distributors", response_model=DistributorListResponse)
async def list_distributors(admin: Operator = Depends(require_admin)):
    """Active distributor accounts with their completed upload counts."""
    try:
        distributors = get_report_service().list_distributors()
        return DistributorListResponse(data=distributors, total=len(distributors))
    except Exception as e:
        return handle_error(e)


@router.get("/distributors/{user_id}/uploads", response_model=UploadHistoryListResponse)
async def list_distributor_uploads(user_id: str, admin: Operator = Depends(require_admin)):
    try:
        uploads = get_report_service().completed_uploads(user_id)
        return UploadHistoryListResponse(data=uploads, total=len(uploads))
    except Exception as e:
        return handle_error(e)


@router.get("/uploads/{upload_id}/raw-summary")
async def download_raw_summary(upload_id: str, admin: Operator = Depends(require_admin)):
    """DS Name / Market SKU / Total Invoice Qty as .xlsx."""
    try:
        file_name, workbook = get_report_service().raw_summary(upload_id)
        return attachment(workbook.getvalue(), file_name, XLSX_MEDIA_TYPE)
    except Exception as e:
        return handle_error(e)


@router.get("/uploads/{upload_id}/mapped-summary")
async def download_mapped_summary(upload_id: str, admin: Operator = Depends(require_admin)):
    """SURVEYOR / VARIANT DESCRIPTION / Total Invoice Qty as .xlsx."""
    try:
        file_name, workbook = get_report_service().mapped_summary(upload_id)
        return attachment(workbook.getvalue(), file_name, XLSX_MEDIA_TYPE)
    except Exception as e:
        return handle_error(e)
