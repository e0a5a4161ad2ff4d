"""
Tests for export service.

Run: pytest tests/unit/test_export_service.py -v
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from openpyxl import load_workbook

from parsers.excel_parser import TemplateRow
from services.reconciliation_service import AggregatedSale
from services.export_service import (
    ExportService,
    format_quantity,
    format_cell,
    render_template_csv,
    output_file_name,
    RAW_SUMMARY_COLUMNS,
    MAPPED_SUMMARY_COLUMNS,
)


@pytest.fixture
def export_service():
    return ExportService()


class TestFormatting:
    """Plain-decimal rendering of output cells."""

    @pytest.mark.parametrize("value,expected", [
        (Decimal("5.000"), "5"),
        (Decimal("1E+1"), "10"),
        (Decimal("2.50"), "2.5"),
        (Decimal("0.00"), "0"),
        (Decimal("-3.25"), "-3.25"),
        (Decimal("1234567"), "1234567"),
    ])
    def test_format_quantity(self, value, expected):
        assert format_quantity(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (None, ""),
        (7, "7"),
        (2.0, "2"),
        (0.1, "0.1"),
        (float("nan"), ""),
        (True, "TRUE"),
        (datetime(2026, 3, 1), "2026-03-01"),
        (datetime(2026, 3, 1, 9, 30), "2026-03-01 09:30:00"),
        (date(2026, 3, 1), "2026-03-01"),
        ("Classic RT", "Classic RT"),
    ])
    def test_format_cell(self, value, expected):
        assert format_cell(value) == expected


class TestRenderTemplateCsv:
    """Tests for render_template_csv()"""

    def test_header_written_verbatim(self):
        """Should keep detected header text and order exactly."""
        headers = ["S.No", "SURVEYOR", "VARIANT DESCRIPTION", "QUANTITY (in M)"]

        payload = render_template_csv(headers, [])

        assert payload.decode("utf-8") == "S.No,SURVEYOR,VARIANT DESCRIPTION,QUANTITY (in M)\n"

    def test_rows_rendered_in_order(self):
        headers = ["SURVEYOR", "VARIANT DESCRIPTION", "QUANTITY (in M)", "Remarks"]
        rows = [
            TemplateRow(cells=["S2", "V2", Decimal("10.50"), None], surveyor="S2", variant_description="V2"),
            TemplateRow(cells=["S1", "V1, large", Decimal("0"), "ok"], surveyor="S1", variant_description="V1, large"),
        ]

        lines = render_template_csv(headers, rows).decode("utf-8").splitlines()

        assert lines[1] == "S2,V2,10.5,"
        assert lines[2] == 'S1,"V1, large",0,ok'

    def test_short_and_long_rows_aligned_to_header(self):
        headers = ["A", "B", "C"]
        rows = [
            TemplateRow(cells=["x"], surveyor="", variant_description=""),
            TemplateRow(cells=["1", "2", "3", "extra"], surveyor="", variant_description=""),
        ]

        lines = render_template_csv(headers, rows).decode("utf-8").splitlines()

        assert lines[1:] == ["x,,", "1,2,3"]

    def test_utf8_names(self):
        rows = [TemplateRow(cells=["José", Decimal("1")], surveyor="José", variant_description="")]

        payload = render_template_csv(["SURVEYOR", "QTY"], rows)

        assert "José" in payload.decode("utf-8")


class TestOutputFileName:

    @pytest.mark.parametrize("template,expected", [
        ("Stock Issue March.xlsx", "Stock Issue March.csv"),
        ("template.csv", "template.csv"),
        ("", "output.csv"),
    ])
    def test_named_after_template(self, template, expected):
        assert output_file_name(template) == expected


class TestDistributorReports:
    """Tests for the admin .xlsx summaries."""

    def test_raw_summary_workbook(self, export_service):
        # Arrange
        summary = [
            AggregatedSale("John", "MSKU-1", Decimal("5")),
            AggregatedSale("Mary", "MSKU-2", Decimal("2.5")),
        ]

        # Act
        output = export_service.generate_raw_summary_excel(summary)

        # Assert
        sheet = load_workbook(output).active
        rows = list(sheet.iter_rows(values_only=True))
        assert sheet.title == "Raw Summary"
        assert list(rows[0]) == RAW_SUMMARY_COLUMNS
        assert rows[1] == ("John", "MSKU-1", 5)
        assert rows[2] == ("Mary", "MSKU-2", 2.5)
        assert sheet.cell(row=1, column=1).font.bold
        assert sheet.freeze_panes == "A2"

    def test_mapped_summary_workbook(self, export_service):
        mapped = [{"surveyor": "S1", "variant_description": "V1", "total_quantity": Decimal("3")}]

        output = export_service.generate_mapped_summary_excel(mapped)

        rows = list(load_workbook(output).active.iter_rows(values_only=True))
        assert list(rows[0]) == MAPPED_SUMMARY_COLUMNS
        assert rows[1] == ("S1", "V1", 3)

    def test_empty_summary_has_header_only(self, export_service):
        output = export_service.generate_raw_summary_excel([])

        rows = list(load_workbook(output).active.iter_rows(values_only=True))
        assert rows == [tuple(RAW_SUMMARY_COLUMNS)]
