"""
Upload workflow schemas: templates, sales files, agent mapping, history.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from enum import Enum
from datetime import datetime

from models.base import BaseSchema


class WorkflowState(str, Enum):
    """Steps of the interactive upload workflow."""
    AWAITING_TEMPLATE = "AWAITING_TEMPLATE"
    AWAITING_SALES_FILE = "AWAITING_SALES_FILE"
    AWAITING_AGENT_MAPPING = "AWAITING_AGENT_MAPPING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


WORKFLOW_TRANSITIONS: dict[WorkflowState, set[WorkflowState]] = {
    WorkflowState.AWAITING_TEMPLATE: {
        WorkflowState.AWAITING_SALES_FILE,
    },
    WorkflowState.AWAITING_SALES_FILE: {
        WorkflowState.AWAITING_SALES_FILE,
        WorkflowState.AWAITING_AGENT_MAPPING,
    },
    WorkflowState.AWAITING_AGENT_MAPPING: {
        WorkflowState.AWAITING_SALES_FILE,
        WorkflowState.PROCESSING,
    },
    WorkflowState.PROCESSING: {
        WorkflowState.COMPLETED,
    },
    WorkflowState.COMPLETED: {
        WorkflowState.AWAITING_SALES_FILE,
    },
    WorkflowState.FAILED: {
        WorkflowState.AWAITING_SALES_FILE,
    },
}


def is_valid_workflow_transition(current: WorkflowState, new: WorkflowState) -> bool:
    """
    Check if a workflow transition is allowed.

    Rules:
    - FAILED is reachable from every state
    - COMPLETED and FAILED only lead back to AWAITING_SALES_FILE
    - A new template or sales file may replace a pending one
    """
    if new == WorkflowState.FAILED:
        return True
    return new in WORKFLOW_TRANSITIONS[current]


class UploadStatus(str, Enum):
    """Status column of upload_history."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# ===================
# TEMPLATE
# ===================

class TemplateResponse(BaseSchema):
    """Operator's current template."""
    id: str
    user_id: str
    file_name: str
    file_path: str
    upload_date: Optional[datetime] = None
    headers: list[str] = Field(default_factory=list)
    row_count: Optional[int] = None
    surveyors: list[str] = Field(default_factory=list)


# ===================
# SALES FILE
# ===================

class SalesFileResponse(BaseModel):
    """
    Result of submitting a sales file.

    unmapped_skus is advisory: those SKUs will contribute nothing.
    """
    upload_id: str
    sales_file_name: str
    state: WorkflowState
    record_count: int
    agent_names: list[str]
    surveyor_options: list[str]
    suggested_mapping: dict[str, str] = Field(default_factory=dict)
    unmapped_skus: list[str] = Field(default_factory=list)


class AgentMappingRequest(BaseSchema):
    """DS Name -> SURVEYOR assignments for the current sales file."""
    mappings: dict[str, str] = Field(
        ...,
        description="Agent name to surveyor name",
        examples=[{"John Doe": "Alpha Surveyors"}]
    )

    @field_validator("mappings")
    @classmethod
    def strip_values(cls, v: dict[str, str]) -> dict[str, str]:
        return {
            (agent or "").strip(): (surveyor or "").strip()
            for agent, surveyor in v.items()
        }


class WorkflowStateResponse(BaseModel):
    """Where the operator currently is in the workflow."""
    state: WorkflowState
    busy: bool = False
    has_template: bool = False
    template_file_name: Optional[str] = None
    upload_id: Optional[str] = None
    sales_file_name: Optional[str] = None
    agent_names: list[str] = Field(default_factory=list)
    unmapped_skus: list[str] = Field(default_factory=list)
    error_message: Optional[str] = None


# ===================
# HISTORY
# ===================

class UploadHistoryResponse(BaseSchema):
    """One row of upload_history."""
    id: str
    user_id: str
    sales_file_name: str
    sales_file_path: Optional[str] = None
    template_file_name: Optional[str] = None
    output_file_name: Optional[str] = None
    output_file_path: Optional[str] = None
    upload_date: Optional[datetime] = None
    status: UploadStatus
    error_message: Optional[str] = None


class UploadHistoryListResponse(BaseModel):
    data: list[UploadHistoryResponse]
    total: int


# ===================
# REPORTS
# ===================

class DistributorSummary(BaseModel):
    """Operator with upload counts, for the admin report list."""
    user_id: str
    username: str
    status: str
    upload_count: int = 0
    last_upload_date: Optional[datetime] = None


class DistributorListResponse(BaseModel):
    data: list[DistributorSummary]
    total: int
