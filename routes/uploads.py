"""
Upload workflow API routes.

    POST /template        store the operator's output template
    POST /sales           submit a sales file, get agents + warnings back
    POST /agent-mapping   assign surveyors, get the generated CSV back
"""

from fastapi import APIRouter, Depends, UploadFile, File
import structlog

from models.upload import (
    AgentMappingRequest,
    SalesFileResponse,
    TemplateResponse,
    UploadHistoryListResponse,
    WorkflowStateResponse,
)
from models.user import Operator
from routes.dependencies import handle_error, get_current_operator, attachment
from services.export_service import CSV_MEDIA_TYPE
from services.template_service import get_template_service
from services.upload_history_service import get_upload_history_service
from services.workflow_service import get_workflow_service

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/state", response_model=WorkflowStateResponse)
async def get_workflow_state(operator: Operator = Depends(get_current_operator)):
    """Current workflow step for the signed-in operator."""
    try:
        return get_workflow_service().get_state(operator)
    except Exception as e:
        return handle_error(e)


# ===================
# TEMPLATE
# ===================

@router.get("/template", response_model=TemplateResponse)
async def get_template(operator: Operator = Depends(get_current_operator)):
    try:
        return get_template_service().current(operator)
    except Exception as e:
        return handle_error(e)


@router.post("/template", response_model=TemplateResponse, status_code=201)
async def upload_template(
    file: UploadFile = File(...),
    operator: Operator = Depends(get_current_operator),
):
    """
    Upload the output template (.xlsx or .csv).

    Must contain SURVEYOR, VARIANT DESCRIPTION and QUANTITY (in M)
    within the first rows.
    """
    try:
        content = await file.read()
        return get_workflow_service().register_template(operator, content, file.filename or "template.xlsx")
    except Exception as e:
        return handle_error(e)


# ===================
# SALES FILE + MAPPING
# ===================

@router.post("/sales", response_model=SalesFileResponse)
async def upload_sales_file(
    file: UploadFile = File(...),
    operator: Operator = Depends(get_current_operator),
):
    """
    Submit a distributor sales file.

    Returns the DS Names to map, the SURVEYOR options from the template,
    a mapping suggested from earlier uploads and any unmapped SKUs.
    """
    try:
        content = await file.read()
        return get_workflow_service().submit_sales_file(operator, content, file.filename or "sales.xlsx")
    except Exception as e:
        return handle_error(e)


@router.post("/agent-mapping")
async def submit_agent_mapping(
    data: AgentMappingRequest,
    operator: Operator = Depends(get_current_operator),
):
    """
    Assign a SURVEYOR to every DS Name and generate the output.

    Returns the generated CSV as a download.
    """
    try:
        output = get_workflow_service().submit_agent_mapping(operator, data.mappings)
        response = attachment(output.content, output.file_name, output.media_type)
        response.headers["X-Upload-Id"] = output.upload_id
        return response
    except Exception as e:
        return handle_error(e)


# ===================
# HISTORY
# ===================

@router.get("/history", response_model=UploadHistoryListResponse)
async def get_upload_history(operator: Operator = Depends(get_current_operator)):
    """The operator's recent uploads, newest first."""
    try:
        uploads = get_upload_history_service().list_for_user(operator.id)
        return UploadHistoryListResponse(data=uploads, total=len(uploads))
    except Exception as e:
        return handle_error(e)


@router.get("/history/{upload_id}/download")
async def download_output(upload_id: str, operator: Operator = Depends(get_current_operator)):
    """Re-download the generated CSV of a completed upload."""
    try:
        file_name, content = get_upload_history_service().download_output(upload_id, operator)
        return attachment(content, file_name, CSV_MEDIA_TYPE)
    except Exception as e:
        return handle_error(e)
