"""
Template service.

An operator's output template is stored once and reused for every later
sales file. The newest user_templates row is the current template.
"""

import time
from datetime import datetime, timezone
from typing import Optional
import structlog

from config import get_settings
from models.upload import TemplateResponse
from models.user import Operator
from parsers.excel_parser import ParsedTemplate, parse_template_file
from exceptions import TemplateNotFoundError

logger = structlog.get_logger(__name__)

EXCEL_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def storage_path(user_id: str, file_name: str, tag: str = "") -> str:
    """'{user_id}/{epoch_ms}_{tag}{file_name}', unique per upload."""
    return f"{user_id}/{int(time.time() * 1000)}_{tag}{file_name}"


class TemplateService:
    """Validate, store and load operator templates."""

    def __init__(self, backend=None):
        self._backend = backend

    @property
    def backend(self):
        if self._backend is None:
            from services.backend import get_backend
            return get_backend()
        return self._backend

    def upload(self, operator: Operator, content: bytes, file_name: str) -> TemplateResponse:
        """
        Validate and store a new template.

        The file is parsed first, so a template without the required
        columns is never stored.

        Raises:
            ExcelParseError / HeaderNotFoundError / EmptyInputError: Invalid file
            StorageError: Upload failed
        """
        settings = get_settings()
        parsed = parse_template_file(content, file_name, settings.header_scan_rows)

        path = storage_path(operator.id, file_name)
        content_type = "text/csv" if file_name.lower().endswith(".csv") else EXCEL_MEDIA_TYPE
        self.backend.storage.upload(settings.templates_bucket, path, content, content_type)

        row = self.backend.templates.insert({
            "user_id": operator.id,
            "file_name": file_name,
            "file_path": path,
            "upload_date": now_iso(),
        })[0]

        logger.info(
            "template_uploaded",
            user_id=operator.id,
            file_name=file_name,
            rows=len(parsed.rows),
            surveyors=len(parsed.surveyors),
        )

        return self._response(row, parsed)

    def current_row(self, operator: Operator) -> Optional[dict]:
        rows = self.backend.templates.list(
            filters={"user_id": operator.id},
            order_by="upload_date",
            descending=True,
            limit=1,
        )
        return rows[0] if rows else None

    def current(self, operator: Operator) -> TemplateResponse:
        """
        Operator's current template with its parsed header.

        Raises:
            TemplateNotFoundError: No template uploaded yet
        """
        row, parsed = self.load(operator)
        return self._response(row, parsed)

    def load(self, operator: Operator) -> tuple[dict, ParsedTemplate]:
        """Download and parse the current template."""
        row = self.current_row(operator)
        if row is None:
            raise TemplateNotFoundError(operator.id)

        content = self.backend.storage.download(get_settings().templates_bucket, row["file_path"])
        parsed = parse_template_file(content, row["file_name"], get_settings().header_scan_rows)
        return row, parsed

    @staticmethod
    def _response(row: dict, parsed: ParsedTemplate) -> TemplateResponse:
        return TemplateResponse(
            id=row["id"],
            user_id=row["user_id"],
            file_name=row["file_name"],
            file_path=row["file_path"],
            upload_date=row.get("upload_date"),
            headers=parsed.headers,
            row_count=len(parsed.rows),
            surveyors=parsed.surveyors,
        )


# Singleton instance
_template_service: Optional[TemplateService] = None


def get_template_service() -> TemplateService:
    """Get or create TemplateService instance."""
    global _template_service
    if _template_service is None:
        _template_service = TemplateService()
    return _template_service
