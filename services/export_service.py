"""
Export service: render output files.

- Template CSV: the operator's template with recomputed quantities,
  header row exactly as detected.
- Distributor reports: raw and mapped sales summaries as .xlsx for admins.
"""

import csv
from datetime import date, datetime, time
from decimal import Decimal
from io import BytesIO, StringIO
from pathlib import PurePath
from typing import Any, Sequence

import pandas as pd
from openpyxl.styles import Font, Border, Side
from openpyxl.utils import get_column_letter
import structlog

from parsers.excel_parser import TemplateRow
from services.reconciliation_service import AggregatedSale

logger = structlog.get_logger(__name__)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

RAW_SUMMARY_COLUMNS = ["DS Name", "Market SKU", "Total Invoice Qty"]
MAPPED_SUMMARY_COLUMNS = ["SURVEYOR", "VARIANT DESCRIPTION", "Total Invoice Qty"]


def format_quantity(value: Decimal) -> str:
    """
    Plain decimal text, no exponent, no trailing zeros.

    Decimal("5.000") -> "5"
    Decimal("1E+1")  -> "10"
    Decimal("2.50")  -> "2.5"
    """
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def format_cell(value: Any) -> str:
    """Render one template cell as CSV text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, Decimal):
        return format_quantity(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value != value:  # NaN
            return ""
        return format_quantity(Decimal(str(value)))
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def render_template_csv(headers: Sequence[str], rows: Sequence[TemplateRow]) -> bytes:
    """
    Serialize rewritten template rows to UTF-8 CSV.

    Args:
        headers: Header cells in detected order
        rows: Template rows, cells aligned with headers

    Returns:
        CSV payload
    """
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        cells = list(row.cells[:len(headers)])
        cells += [None] * (len(headers) - len(cells))
        writer.writerow([format_cell(cell) for cell in cells])

    payload = buffer.getvalue().encode("utf-8")

    logger.info(
        "template_csv_rendered",
        rows=len(rows),
        columns=len(headers),
        size_bytes=len(payload),
    )

    return payload


def output_file_name(template_file_name: str) -> str:
    """
    Output is always CSV, named after the template.

    'Stock Issue March.xlsx' -> 'Stock Issue March.csv'
    """
    stem = PurePath(template_file_name or "output").stem or "output"
    return f"{stem}.csv"


# ===================
# DISTRIBUTOR REPORTS
# ===================

class ExportService:
    """Builds .xlsx summaries for the admin distributor reports."""

    def generate_raw_summary_excel(self, summary: Sequence[AggregatedSale]) -> BytesIO:
        """One row per (agent, SKU) with the summed quantity."""
        df = pd.DataFrame(
            [
                [sale.agent_name, sale.market_sku, float(sale.total_quantity)]
                for sale in summary
            ],
            columns=RAW_SUMMARY_COLUMNS,
        )
        logger.info("generating_raw_summary", rows=len(df))
        return self._write_workbook(df, "Raw Summary")

    def generate_mapped_summary_excel(self, mapped_rows: Sequence[dict]) -> BytesIO:
        """One row per (sale, variant) with its surveyor."""
        df = pd.DataFrame(
            [
                [row["surveyor"], row["variant_description"], float(row["total_quantity"])]
                for row in mapped_rows
            ],
            columns=MAPPED_SUMMARY_COLUMNS,
        )
        logger.info("generating_mapped_summary", rows=len(df))
        return self._write_workbook(df, "Mapped Summary")

    def _write_workbook(self, df: pd.DataFrame, sheet_name: str) -> BytesIO:
        output = BytesIO()

        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=sheet_name, index=False)
            ws = writer.sheets[sheet_name]

            bold_font = Font(bold=True)
            thin_border = Border(bottom=Side(style="thin", color="000000"))

            for col_idx, column in enumerate(df.columns, start=1):
                cell = ws.cell(row=1, column=col_idx)
                cell.font = bold_font
                cell.border = thin_border

                longest = max([len(str(column))] + [len(str(v)) for v in df[column]])
                ws.column_dimensions[get_column_letter(col_idx)].width = min(longest + 2, 60)

            ws.freeze_panes = "A2"

        output.seek(0)
        return output


# Singleton instance
_export_service = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
