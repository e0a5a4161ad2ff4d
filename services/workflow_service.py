"""
Interactive upload workflow.

    AWAITING_TEMPLATE -> AWAITING_SALES_FILE -> AWAITING_AGENT_MAPPING
        -> PROCESSING -> COMPLETED        (FAILED from any state)

One session per operator, kept in process memory. A session lost on
restart is rebuilt from the stored template and the newest pending
upload, whose sales summary is already persisted.

Only one step runs at a time per operator: a second submission while a
step is in flight is refused with WorkflowBusyError, never queued.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional
import structlog

from config import get_settings
from models.upload import (
    WorkflowState,
    UploadStatus,
    SalesFileResponse,
    TemplateResponse,
    WorkflowStateResponse,
    is_valid_workflow_transition,
)
from models.user import Operator
from parsers.excel_parser import ParsedTemplate, parse_sales_file
from services.reconciliation_service import (
    AggregatedSale,
    ReconciliationResult,
    summarize_sales,
    distinct_agents,
    find_unmapped_skus,
    reconcile,
)
from services.export_service import render_template_csv, output_file_name, CSV_MEDIA_TYPE
from services.template_service import TemplateService, get_template_service, storage_path
from services.upload_history_service import UploadHistoryService, get_upload_history_service
from services.sku_mapping_service import SKUMappingService, get_sku_mapping_service
from exceptions import (
    IncompleteMappingError,
    InvalidStatusTransitionError,
    WorkflowBusyError,
)

logger = structlog.get_logger(__name__)


@dataclass
class WorkflowSession:
    """Per-operator workflow state between requests."""
    user_id: str
    state: WorkflowState
    busy: bool = False
    upload_id: Optional[str] = None
    sales_file_name: Optional[str] = None
    template_row: Optional[dict] = None
    template: Optional[ParsedTemplate] = None
    summary: list[AggregatedSale] = field(default_factory=list)
    agent_names: list[str] = field(default_factory=list)
    unmapped_skus: list[str] = field(default_factory=list)
    error_message: Optional[str] = None
    updated_at: datetime = field(default_factory=datetime.now)

    def clear_upload(self) -> None:
        self.upload_id = None
        self.sales_file_name = None
        self.summary = []
        self.agent_names = []
        self.unmapped_skus = []


@dataclass
class ProcessedOutput:
    """Generated output of a completed run."""
    upload_id: str
    file_name: str
    content: bytes
    result: ReconciliationResult
    media_type: str = CSV_MEDIA_TYPE


class WorkflowService:
    """
    Drives one operator at a time through template, sales file and agent
    mapping to a generated output file.
    """

    def __init__(
        self,
        backend=None,
        templates: Optional[TemplateService] = None,
        history: Optional[UploadHistoryService] = None,
        sku_mappings: Optional[SKUMappingService] = None,
    ):
        self._backend = backend
        self.templates = templates or (TemplateService(backend) if backend else get_template_service())
        self.history = history or (UploadHistoryService(backend) if backend else get_upload_history_service())
        self.sku_mappings = sku_mappings or (SKUMappingService(backend) if backend else get_sku_mapping_service())
        self._sessions: dict[str, WorkflowSession] = {}
        self._lock = threading.Lock()

    @property
    def backend(self):
        if self._backend is None:
            from services.backend import get_backend
            return get_backend()
        return self._backend

    # ===================
    # SESSIONS
    # ===================

    def _session(self, operator: Operator) -> WorkflowSession:
        with self._lock:
            session = self._sessions.get(operator.id)
        if session is not None:
            return session

        session = self._restore(operator)
        with self._lock:
            # another request may have restored it meanwhile
            return self._sessions.setdefault(operator.id, session)

    def _restore(self, operator: Operator) -> WorkflowSession:
        """Rebuild a session from persisted template and history."""
        if self.templates.current_row(operator) is None:
            return WorkflowSession(user_id=operator.id, state=WorkflowState.AWAITING_TEMPLATE)

        session = WorkflowSession(user_id=operator.id, state=WorkflowState.AWAITING_SALES_FILE)

        uploads = self.history.list_for_user(operator.id)
        latest = uploads[0] if uploads else None
        if latest is not None and latest.status == UploadStatus.PROCESSING:
            summary = self.history.load_summary(latest.id)
            if summary:
                session.state = WorkflowState.AWAITING_AGENT_MAPPING
                session.upload_id = latest.id
                session.sales_file_name = latest.sales_file_name
                session.summary = summary
                session.agent_names = distinct_agents(summary)
                session.unmapped_skus = find_unmapped_skus(summary, self.sku_mappings.list_pairs())

        logger.info("workflow_session_restored", user_id=operator.id, state=session.state.value)
        return session

    def _acquire(self, session: WorkflowSession) -> None:
        with self._lock:
            if session.busy:
                logger.warning("workflow_busy", user_id=session.user_id, state=session.state.value)
                raise WorkflowBusyError(session.user_id)
            session.busy = True

    def _release(self, session: WorkflowSession) -> None:
        with self._lock:
            session.busy = False
            session.updated_at = datetime.now()

    @staticmethod
    def _require(session: WorkflowSession, new: WorkflowState) -> None:
        if session.state != new and not is_valid_workflow_transition(session.state, new):
            raise InvalidStatusTransitionError(session.state.value, new.value)

    def _transition(self, session: WorkflowSession, new: WorkflowState) -> None:
        if not is_valid_workflow_transition(session.state, new):
            raise InvalidStatusTransitionError(session.state.value, new.value)
        logger.info(
            "workflow_transition",
            user_id=session.user_id,
            from_state=session.state.value,
            to_state=new.value,
        )
        session.state = new

    def _abandon_pending(self, session: WorkflowSession, reason: str) -> None:
        """Close the history row of a sales file that never got mapped."""
        if session.state == WorkflowState.AWAITING_AGENT_MAPPING and session.upload_id:
            self.history.record_failed_upload(session.upload_id, reason)
        session.clear_upload()

    def reset(self, operator: Operator) -> None:
        """Forget the in-memory session; the next call rebuilds it."""
        with self._lock:
            self._sessions.pop(operator.id, None)

    # ===================
    # QUERIES
    # ===================

    def get_state(self, operator: Operator) -> WorkflowStateResponse:
        session = self._session(operator)
        template_row = self.templates.current_row(operator)

        return WorkflowStateResponse(
            state=session.state,
            busy=session.busy,
            has_template=template_row is not None,
            template_file_name=template_row["file_name"] if template_row else None,
            upload_id=session.upload_id,
            sales_file_name=session.sales_file_name,
            agent_names=session.agent_names,
            unmapped_skus=session.unmapped_skus,
            error_message=session.error_message,
        )

    # ===================
    # STEPS
    # ===================

    def register_template(self, operator: Operator, content: bytes, file_name: str) -> TemplateResponse:
        """
        Store a new template and move to AWAITING_SALES_FILE.

        A sales file still waiting for its agent mapping is dropped.
        """
        session = self._session(operator)
        self._acquire(session)
        try:
            self._require(session, WorkflowState.AWAITING_SALES_FILE)

            template = self.templates.upload(operator, content, file_name)

            self._abandon_pending(session, "Template replaced before agent mapping")
            session.template_row = None
            session.template = None
            session.error_message = None
            if session.state != WorkflowState.AWAITING_SALES_FILE:
                self._transition(session, WorkflowState.AWAITING_SALES_FILE)

            return template
        finally:
            self._release(session)

    def submit_sales_file(self, operator: Operator, content: bytes, file_name: str) -> SalesFileResponse:
        """
        Parse a sales file and move to AWAITING_AGENT_MAPPING.

        Unmapped SKUs are returned as a warning, never an error. Parse
        failures leave the session where it was.

        Raises:
            TemplateNotFoundError: No template on file
            ExcelParseError / HeaderNotFoundError / EmptyInputError: Bad sales file
            WorkflowBusyError: Another step is running
        """
        session = self._session(operator)
        self._acquire(session)
        try:
            self._require(session, WorkflowState.AWAITING_SALES_FILE)

            template_row, template = self.templates.load(operator)

            records = parse_sales_file(content, file_name, get_settings().header_scan_rows)
            summary = summarize_sales(records)
            agents = distinct_agents(summary)
            unmapped = find_unmapped_skus(summary, self.sku_mappings.list_pairs())

            # The pending upload stays usable until the new one is stored
            upload = self.history.record_upload(
                operator,
                sales_file_name=file_name,
                template_file_name=template_row["file_name"],
                output_file_name=output_file_name(template_row["file_name"]),
            )
            try:
                self.history.save_summary(upload.id, summary)
            except Exception as e:
                self.history.record_failed_upload(upload.id, getattr(e, "message", None) or str(e))
                raise
            suggested = self.history.agent_history(agents)

            self._abandon_pending(session, "Superseded by a new sales file")

            if session.state != WorkflowState.AWAITING_SALES_FILE:
                self._transition(session, WorkflowState.AWAITING_SALES_FILE)
            self._transition(session, WorkflowState.AWAITING_AGENT_MAPPING)

            session.upload_id = upload.id
            session.sales_file_name = file_name
            session.template_row = template_row
            session.template = template
            session.summary = summary
            session.agent_names = agents
            session.unmapped_skus = unmapped
            session.error_message = None

            if unmapped:
                logger.warning("unmapped_skus_found", user_id=operator.id, count=len(unmapped))

            logger.info(
                "sales_file_accepted",
                user_id=operator.id,
                upload_id=upload.id,
                records=len(records),
                agents=len(agents),
            )

            return SalesFileResponse(
                upload_id=upload.id,
                sales_file_name=file_name,
                state=session.state,
                record_count=len(records),
                agent_names=agents,
                surveyor_options=template.surveyors,
                suggested_mapping=suggested,
                unmapped_skus=unmapped,
            )
        finally:
            self._release(session)

    def submit_agent_mapping(self, operator: Operator, agent_mapping: Mapping[str, str]) -> ProcessedOutput:
        """
        Gate on a complete agent mapping, then generate the output file.

        Raises:
            InvalidStatusTransitionError: No sales file waiting for a mapping
            IncompleteMappingError: Some agent has no surveyor (state unchanged)
            WorkflowBusyError: Another step is running
            StorageError / NetworkError / DatabaseError: Run failed (state FAILED)
        """
        session = self._session(operator)
        self._acquire(session)
        try:
            if session.state != WorkflowState.AWAITING_AGENT_MAPPING:
                raise InvalidStatusTransitionError(session.state.value, WorkflowState.PROCESSING.value)
            if not session.upload_id or not session.agent_names:
                logger.warning("agent_mapping_without_sales_file", user_id=operator.id)
                raise InvalidStatusTransitionError(session.state.value, WorkflowState.PROCESSING.value)

            mapping = {
                agent: (agent_mapping.get(agent) or "").strip()
                for agent in session.agent_names
            }
            unassigned = [agent for agent, surveyor in mapping.items() if not surveyor]
            if unassigned:
                logger.info("agent_mapping_incomplete", user_id=operator.id, unassigned=len(unassigned))
                raise IncompleteMappingError(unassigned)

            self._transition(session, WorkflowState.PROCESSING)
            try:
                output = self._process(operator, session, mapping)
            except Exception as e:
                message = getattr(e, "message", None) or str(e)
                logger.error(
                    "workflow_run_failed",
                    user_id=operator.id,
                    upload_id=session.upload_id,
                    error=message,
                    error_type=type(e).__name__,
                )
                self._transition(session, WorkflowState.FAILED)
                session.error_message = message
                if session.upload_id:
                    self.history.record_failed_upload(session.upload_id, message)
                raise

            self._transition(session, WorkflowState.COMPLETED)
            session.clear_upload()
            session.error_message = None

            self.history.prune(operator.id)
            return output
        finally:
            self._release(session)

    def _process(self, operator: Operator, session: WorkflowSession, mapping: dict[str, str]) -> ProcessedOutput:
        upload_id = session.upload_id
        self.history.save_agent_mapping(upload_id, mapping)

        if session.template is None:
            session.template_row, session.template = self.templates.load(operator)

        result = reconcile(
            session.template,
            session.summary,
            self.sku_mappings.list_pairs(),
            mapping,
        )
        content = render_template_csv(session.template.headers, result.rows)

        file_name = output_file_name(session.template_row["file_name"])
        path = storage_path(operator.id, file_name, tag="output_")
        self.backend.storage.upload(get_settings().output_files_bucket, path, content, CSV_MEDIA_TYPE)
        self.history.mark_completed(upload_id, path)

        logger.info(
            "workflow_run_completed",
            user_id=operator.id,
            upload_id=upload_id,
            output_file=file_name,
            size_bytes=len(content),
        )

        return ProcessedOutput(upload_id=upload_id, file_name=file_name, content=content, result=result)


# Singleton instance
_workflow_service: Optional[WorkflowService] = None


def get_workflow_service() -> WorkflowService:
    """Get or create WorkflowService instance."""
    global _workflow_service
    if _workflow_service is None:
        _workflow_service = WorkflowService()
    return _workflow_service
