"""
Distributor reports for admins.

Lists active distributors and their completed uploads, and rebuilds the
raw and mapped sales summaries of one upload as .xlsx.
"""

from io import BytesIO
from pathlib import PurePath
from typing import Optional
import structlog

from models.upload import (
    DistributorSummary,
    UploadHistoryResponse,
    UploadStatus,
)
from models.user import UserRole, UserStatus
from services.export_service import ExportService, get_export_service
from services.reconciliation_service import expand_mapped_summary
from services.sku_mapping_service import SKUMappingService, get_sku_mapping_service
from services.upload_history_service import UploadHistoryService, get_upload_history_service

logger = structlog.get_logger(__name__)


class ReportService:
    """Admin-facing reads over upload history and summaries."""

    def __init__(
        self,
        backend=None,
        history: Optional[UploadHistoryService] = None,
        sku_mappings: Optional[SKUMappingService] = None,
        export: Optional[ExportService] = None,
    ):
        self._backend = backend
        self.history = history or (UploadHistoryService(backend) if backend else get_upload_history_service())
        self.sku_mappings = sku_mappings or (SKUMappingService(backend) if backend else get_sku_mapping_service())
        self.export = export or get_export_service()

    @property
    def backend(self):
        if self._backend is None:
            from services.backend import get_backend
            return get_backend()
        return self._backend

    def list_distributors(self) -> list[DistributorSummary]:
        """Active non-admin operators, by username, with completed upload counts."""
        users = self.backend.users.list(
            filters={"role": UserRole.USER.value, "status": UserStatus.ACTIVE.value},
            order_by="username",
        )

        distributors = []
        for user in users:
            uploads = self.completed_uploads(user["id"])
            distributors.append(DistributorSummary(
                user_id=user["id"],
                username=user["username"],
                status=user["status"],
                upload_count=len(uploads),
                last_upload_date=uploads[0].upload_date if uploads else None,
            ))

        logger.info("distributors_listed", count=len(distributors))
        return distributors

    def completed_uploads(self, user_id: str) -> list[UploadHistoryResponse]:
        """Newest first."""
        return [
            upload for upload in self.history.list_for_user(user_id)
            if upload.status == UploadStatus.COMPLETED
        ]

    def raw_summary(self, upload_id: str) -> tuple[str, BytesIO]:
        """
        Aggregated (agent, SKU) totals of one upload.

        Returns:
            Tuple of (file name, workbook)
        """
        upload = self.history.get(upload_id)
        summary = self.history.load_summary(upload_id)
        logger.info("raw_summary_requested", upload_id=upload_id, rows=len(summary))
        return _report_name("raw_summary", upload), self.export.generate_raw_summary_excel(summary)

    def mapped_summary(self, upload_id: str) -> tuple[str, BytesIO]:
        """
        Summary expanded through the upload's agent mapping and the
        current SKU mapping, one row per (sale, variant).
        """
        upload = self.history.get(upload_id)
        summary = self.history.load_summary(upload_id)
        agent_mapping = self.history.load_agent_mapping(upload_id)
        rows = expand_mapped_summary(summary, self.sku_mappings.list_pairs(), agent_mapping)
        logger.info("mapped_summary_requested", upload_id=upload_id, rows=len(rows))
        return _report_name("mapped_summary", upload), self.export.generate_mapped_summary_excel(rows)


def _report_name(prefix: str, upload: UploadHistoryResponse) -> str:
    """'raw_summary_march_sales.xlsx'"""
    stem = PurePath(upload.sales_file_name or "report").stem or "report"
    return f"{prefix}_{stem}.xlsx"


# Singleton instance
_report_service: Optional[ReportService] = None


def get_report_service() -> ReportService:
    """Get or create ReportService instance."""
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
