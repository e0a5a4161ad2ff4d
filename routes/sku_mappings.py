"""
SKU mapping API routes.

Any signed-in operator can read and edit mappings, as in the upload
screen; bulk replacement is admin only.
"""

from fastapi import APIRouter, Depends, UploadFile, File
from fastapi.responses import Response
import structlog

from models.sku_mapping import (
    SKUMappingCreate,
    SKUMappingUpdate,
    SKUMappingResponse,
    SKUMappingListResponse,
    SKUMappingBulkUploadResponse,
)
from models.user import Operator
from routes.dependencies import handle_error, get_current_operator, require_admin
from services.sku_mapping_service import get_sku_mapping_service

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("", response_model=SKUMappingListResponse)
async def list_sku_mappings(operator: Operator = Depends(get_current_operator)):
    """All (market SKU, variant description) pairs."""
    try:
        mappings = get_sku_mapping_service().get_all()
        return SKUMappingListResponse(data=mappings, total=len(mappings))
    except Exception as e:
        return handle_error(e)


@router.post("", response_model=SKUMappingResponse, status_code=201)
async def create_sku_mapping(
    data: SKUMappingCreate,
    operator: Operator = Depends(get_current_operator),
):
    try:
        return get_sku_mapping_service().create(data, operator)
    except Exception as e:
        return handle_error(e)


@router.post("/upload", response_model=SKUMappingBulkUploadResponse)
async def upload_sku_mappings(
    file: UploadFile = File(...),
    admin: Operator = Depends(require_admin),
):
    """
    Replace the whole SKU mapping table from a master file.

    Accepted columns: Market SKU / market_sku / MSKU / sku and
    Variant Description / variant_description / Description / desc.
    """
    try:
        content = await file.read()
        return get_sku_mapping_service().bulk_replace(content, file.filename or "mappings.xlsx", admin)
    except Exception as e:
        return handle_error(e)


@router.patch("/{mapping_id}", response_model=SKUMappingResponse)
async def update_sku_mapping(
    mapping_id: str,
    data: SKUMappingUpdate,
    operator: Operator = Depends(get_current_operator),
):
    try:
        return get_sku_mapping_service().update(mapping_id, data)
    except Exception as e:
        return handle_error(e)


@router.delete("/{mapping_id}", status_code=204)
async def delete_sku_mapping(
    mapping_id: str,
    operator: Operator = Depends(get_current_operator),
):
    try:
        get_sku_mapping_service().delete(mapping_id)
        return Response(status_code=204)
    except Exception as e:
        return handle_error(e)
