"""
Upload history: one row per submitted sales file, plus the per-upload
sales summary and agent -> surveyor mapping it produced.
"""
import structlog
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from config import get_settings
from models.upload import UploadHistoryResponse, UploadStatus
from models.user import Operator
from services.reconciliation_service import AggregatedSale
from services.template_service import now_iso
from exceptions import UploadNotFoundError, PermissionDeniedError

logger = structlog.get_logger(__name__)

# Sales files are not kept; their history path only records the name
SKIPPED_PREFIX = "skipped/"


class UploadHistoryService:
    def __init__(self, backend=None):
        self._backend = backend

    @property
    def backend(self):
        if self._backend is None:
            from services.backend import get_backend
            return get_backend()
        return self._backend

    # ===================
    # HISTORY ROWS
    # ===================

    def record_upload(
        self,
        operator: Operator,
        sales_file_name: str,
        template_file_name: str,
        output_file_name: str,
    ) -> UploadHistoryResponse:
        """Open a history row in `processing` for a freshly parsed sales file."""
        row = self.backend.uploads.insert({
            "user_id": operator.id,
            "sales_file_name": sales_file_name,
            "sales_file_path": f"{SKIPPED_PREFIX}{operator.id}/{sales_file_name}",
            "template_file_name": template_file_name,
            "output_file_name": output_file_name,
            "upload_date": now_iso(),
            "status": UploadStatus.PROCESSING.value,
        })[0]
        logger.info(
            "upload_recorded",
            upload_id=row["id"],
            user_id=operator.id,
            sales_file_name=sales_file_name,
        )
        return UploadHistoryResponse(**row)

    def mark_completed(self, upload_id: str, output_file_path: str) -> UploadHistoryResponse:
        row = self.backend.uploads.update(upload_id, {
            "output_file_path": output_file_path,
            "status": UploadStatus.COMPLETED.value,
            "error_message": None,
        })
        if row is None:
            raise UploadNotFoundError(upload_id)
        logger.info("upload_completed", upload_id=upload_id, output_file_path=output_file_path)
        return UploadHistoryResponse(**row)

    def record_failed_upload(self, upload_id: str, error_message: str) -> None:
        """Mark a run failed for later diagnosis."""
        # Truncate error message to prevent excessively long entries
        truncated_msg = error_message[:2000] if error_message else "Unknown error"
        try:
            self.backend.uploads.update(upload_id, {
                "status": UploadStatus.FAILED.value,
                "error_message": truncated_msg,
            })
            logger.info(
                "failed_upload_recorded",
                upload_id=upload_id,
                error=truncated_msg[:200],
            )
        except Exception as log_err:
            # Never let failure logging break the error response
            logger.warning(
                "failed_to_record_upload_error",
                upload_id=upload_id,
                log_error=str(log_err),
            )

    def get(self, upload_id: str, operator: Optional[Operator] = None) -> UploadHistoryResponse:
        """
        One history row. Non-admin operators only see their own uploads.

        Raises:
            UploadNotFoundError: Unknown id
            PermissionDeniedError: Someone else's upload
        """
        row = self.backend.uploads.get(upload_id)
        if row is None:
            raise UploadNotFoundError(upload_id)
        if operator is not None and not operator.is_admin and row["user_id"] != operator.id:
            raise PermissionDeniedError("You can only access your own uploads")
        return UploadHistoryResponse(**row)

    def list_for_user(self, user_id: str) -> list[UploadHistoryResponse]:
        """Newest first."""
        rows = self.backend.uploads.list(
            filters={"user_id": user_id},
            order_by="upload_date",
            descending=True,
        )
        return [UploadHistoryResponse(**row) for row in rows]

    def download_output(self, upload_id: str, operator: Optional[Operator] = None) -> tuple[str, bytes]:
        """
        Generated CSV of a completed upload.

        Returns:
            Tuple of (output file name, content)
        """
        upload = self.get(upload_id, operator)
        if upload.status != UploadStatus.COMPLETED or not upload.output_file_path:
            raise UploadNotFoundError(upload_id)

        content = self.backend.storage.download(
            get_settings().output_files_bucket,
            upload.output_file_path,
        )
        return upload.output_file_name or "output.csv", content

    def prune(self, user_id: str, keep: Optional[int] = None) -> int:
        """
        Keep only the newest `keep` uploads of one operator.

        Removes output files, summary rows, agent mappings and history
        rows of older uploads. Failures are logged and never raised.

        Returns:
            Number of history rows removed
        """
        keep = keep if keep is not None else get_settings().upload_history_keep

        try:
            uploads = self.backend.uploads.list(
                filters={"user_id": user_id},
                order_by="upload_date",
                descending=True,
            )
            to_delete = uploads[keep:]
            if not to_delete:
                return 0

            output_paths = [
                u["output_file_path"] for u in to_delete
                if u.get("output_file_path") and not u["output_file_path"].startswith(SKIPPED_PREFIX)
            ]
            if output_paths:
                try:
                    self.backend.storage.remove(get_settings().output_files_bucket, output_paths)
                except Exception as e:
                    logger.warning("prune_storage_failed", user_id=user_id, error=str(e))

            delete_ids = [u["id"] for u in to_delete]
            # Postgres cascades these; the in-memory store does not
            self.backend.sales_summary.delete({"upload_id": delete_ids})
            self.backend.agent_mappings.delete({"upload_id": delete_ids})
            self.backend.uploads.delete({"id": delete_ids})

            logger.info("upload_history_pruned", user_id=user_id, removed=len(delete_ids), kept=keep)
            return len(delete_ids)

        except Exception as e:
            logger.warning("upload_history_prune_failed", user_id=user_id, error=str(e))
            return 0

    # ===================
    # SALES SUMMARY
    # ===================

    def save_summary(self, upload_id: str, summary: Iterable[AggregatedSale]) -> int:
        rows = [
            {
                "upload_id": upload_id,
                "ds_name": sale.agent_name,
                "market_sku": sale.market_sku,
                "total_qty": str(sale.total_quantity),
            }
            for sale in summary
        ]
        self.backend.sales_summary.insert(rows)
        logger.debug("sales_summary_saved", upload_id=upload_id, rows=len(rows))
        return len(rows)

    def load_summary(self, upload_id: str) -> list[AggregatedSale]:
        rows = self.backend.sales_summary.list(filters={"upload_id": upload_id})
        summary = [
            AggregatedSale(
                agent_name=row["ds_name"],
                market_sku=row["market_sku"],
                total_quantity=Decimal(str(row["total_qty"])),
            )
            for row in rows
        ]
        return sorted(summary, key=lambda s: (s.agent_name, s.market_sku))

    # ===================
    # AGENT MAPPING
    # ===================

    def save_agent_mapping(self, upload_id: str, mapping: Mapping[str, str]) -> int:
        rows = [
            {"upload_id": upload_id, "ds_name": agent, "surveyor_name": surveyor}
            for agent, surveyor in sorted(mapping.items())
        ]
        self.backend.agent_mappings.insert(rows)
        return len(rows)

    def load_agent_mapping(self, upload_id: str) -> dict[str, str]:
        rows = self.backend.agent_mappings.list(filters={"upload_id": upload_id})
        return {row["ds_name"]: row["surveyor_name"] for row in rows}

    def agent_history(self, agent_names: list[str]) -> dict[str, str]:
        """
        Most recent surveyor chosen for each agent, across all uploads.

        Used to pre-fill the mapping step; lookup failures yield an empty
        suggestion instead of an error.
        """
        if not agent_names:
            return {}
        try:
            rows = self.backend.agent_mappings.list(
                filters={"ds_name": list(agent_names)},
                order_by="created_at",
                descending=True,
            )
        except Exception as e:
            logger.warning("agent_history_lookup_failed", error=str(e))
            return {}

        history: dict[str, str] = {}
        for row in rows:
            if row["ds_name"] not in history and row.get("surveyor_name"):
                history[row["ds_name"]] = row["surveyor_name"]
        return history


_service: Optional[UploadHistoryService] = None


def get_upload_history_service() -> UploadHistoryService:
    global _service
    if _service is None:
        _service = UploadHistoryService()
    return _service
