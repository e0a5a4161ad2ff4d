"""
Header-detecting spreadsheet parser.

Distributor sales exports and operator templates both arrive with banner
rows (company name, report period, blank lines) above the real header, so
the header position is never assumed. The first rows of the first sheet are
scanned for the row carrying every required column name.

Supported inputs: .xlsx / .xlsm (openpyxl) and .csv.
"""

import csv
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Optional, Sequence
import math

import structlog
from openpyxl import load_workbook

from exceptions import ExcelParseError, HeaderNotFoundError, EmptyInputError
from utils.text_utils import collapse_whitespace, header_key, clean_name, is_blank

logger = structlog.get_logger(__name__)

DEFAULT_SCAN_ROWS = 20

SALES_AGENT_COLUMN = "DS Name"
SALES_SKU_COLUMN = "Market SKU"
SALES_QUANTITY_COLUMN = "Invoice Qty"
SALES_REQUIRED_COLUMNS = (SALES_AGENT_COLUMN, SALES_SKU_COLUMN, SALES_QUANTITY_COLUMN)

TEMPLATE_SURVEYOR_COLUMN = "SURVEYOR"
TEMPLATE_VARIANT_COLUMN = "VARIANT DESCRIPTION"
TEMPLATE_QUANTITY_COLUMN = "QUANTITY (in M)"
TEMPLATE_REQUIRED_COLUMNS = (
    TEMPLATE_SURVEYOR_COLUMN,
    TEMPLATE_VARIANT_COLUMN,
    TEMPLATE_QUANTITY_COLUMN,
)

# Accepted header spellings in an SKU mapping master file
MAPPING_SKU_ALIASES = ("Market SKU", "market_sku", "MSKU", "sku")
MAPPING_VARIANT_ALIASES = ("Variant Description", "variant_description", "Description", "desc")

EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")

# Leading number of a free-text quantity cell: "12.5 kg" -> 12.5
_LEADING_NUMBER_RE = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?")


# ===================
# RESULT TYPES
# ===================

@dataclass
class SalesRecord:
    """One usable row of a distributor sales file."""
    agent_name: str
    market_sku: str
    invoice_quantity: Decimal


@dataclass
class HeaderMatch:
    """Header row located by find_header_row."""
    row_index: int
    headers: list[str]
    columns: dict[str, int]  # required name -> column index


@dataclass
class TemplateRow:
    """
    One data row of the output template.

    cells holds every column in header order; only the quantity cell is
    ever rewritten.
    """
    cells: list[Any]
    surveyor: str
    variant_description: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.surveyor, self.variant_description)


@dataclass
class ParsedTemplate:
    """Template file split into header and rows."""
    headers: list[str]
    rows: list[TemplateRow]
    quantity_column: int
    header_row: int = 0
    sheet_name: Optional[str] = None

    @property
    def surveyors(self) -> list[str]:
        """Sorted distinct SURVEYOR values, offered when mapping agents."""
        return sorted({row.surveyor for row in self.rows if row.surveyor})


@dataclass
class ParsedSKUMappings:
    """Rows of an SKU mapping master file."""
    mappings: list[tuple[str, str]] = field(default_factory=list)
    skipped_rows: int = 0


# ===================
# GRID READING
# ===================

def read_grid(content: bytes, filename: Optional[str] = None) -> tuple[list[list[Any]], Optional[str]]:
    """
    Read the first sheet of a spreadsheet into a list of rows.

    Args:
        content: Raw file bytes
        filename: Original file name, used to pick the reader

    Returns:
        Tuple of (rows, sheet name). Sheet name is None for CSV.

    Raises:
        ExcelParseError: If the file cannot be read
    """
    if not content:
        raise ExcelParseError("File is empty", details={"filename": filename})

    suffix = Path(filename).suffix.lower() if filename else ""

    if suffix == ".xls":
        raise ExcelParseError(
            "Legacy .xls files are not supported. Save the file as .xlsx or .csv",
            details={"filename": filename}
        )

    # xlsx files are zip archives
    if suffix in EXCEL_EXTENSIONS or (suffix != ".csv" and content[:2] == b"PK"):
        return _read_excel_grid(content, filename)

    return _read_csv_grid(content, filename), None


def _read_excel_grid(content: bytes, filename: Optional[str]) -> tuple[list[list[Any]], str]:
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        logger.error("excel_read_failed", filename=filename, error=str(e))
        raise ExcelParseError(
            message="Failed to read Excel file",
            details={"filename": filename, "original_error": str(e)}
        )

    try:
        if not workbook.worksheets:
            raise ExcelParseError("Workbook has no sheets", details={"filename": filename})
        sheet = workbook.worksheets[0]
        rows = [list(row) for row in sheet.iter_rows(values_only=True)]
        sheet_name = sheet.title
    finally:
        workbook.close()

    logger.debug("excel_grid_loaded", filename=filename, sheet=sheet_name, rows=len(rows))
    return rows, sheet_name


def _read_csv_grid(content: bytes, filename: Optional[str]) -> list[list[Any]]:
    text = None
    for encoding in CSV_ENCODINGS:
        try:
            text = content.decode(encoding)
            break
        except UnicodeDecodeError:
            continue

    if text is None:
        raise ExcelParseError(
            message="Failed to decode CSV file",
            details={"filename": filename, "encodings_tried": list(CSV_ENCODINGS)}
        )

    try:
        rows = [list(row) for row in csv.reader(StringIO(text, newline=""))]
    except csv.Error as e:
        logger.error("csv_read_failed", filename=filename, error=str(e))
        raise ExcelParseError(
            message="Failed to read CSV file",
            details={"filename": filename, "original_error": str(e)}
        )

    logger.debug("csv_grid_loaded", filename=filename, rows=len(rows))
    return rows


# ===================
# HEADER DETECTION
# ===================

def find_header_row(
    rows: Sequence[Sequence[Any]],
    required: Sequence[str],
    scan_rows: int = DEFAULT_SCAN_ROWS,
    file_kind: str = "file",
) -> HeaderMatch:
    """
    Locate the first row whose cells contain every required column name.

    Cells are compared after collapsing whitespace, ignoring case.
    Only the first `scan_rows` rows are considered.

    Raises:
        HeaderNotFoundError: Naming the columns missing from the closest
            candidate row in the scan window
    """
    required_keys = {header_key(name): name for name in required}
    best_missing = list(required)

    for index, row in enumerate(rows[:scan_rows]):
        if not row:
            continue

        positions: dict[str, int] = {}
        for col, cell in enumerate(row):
            key = header_key(cell)
            if key in required_keys and key not in positions:
                positions[key] = col

        missing = [name for key, name in required_keys.items() if key not in positions]
        if not missing:
            headers = [collapse_whitespace(cell) for cell in row]
            while headers and headers[-1] == "":
                headers.pop()

            logger.debug("header_row_found", row_index=index, columns=len(headers))
            return HeaderMatch(
                row_index=index,
                headers=headers,
                columns={required_keys[key]: col for key, col in positions.items()},
            )

        if len(missing) < len(best_missing):
            best_missing = missing

    logger.warning(
        "header_row_not_found",
        file_kind=file_kind,
        scanned_rows=min(len(rows), scan_rows),
        missing=best_missing,
    )
    raise HeaderNotFoundError(best_missing, scanned_rows=min(len(rows), scan_rows), file_kind=file_kind)


# ===================
# FILE PARSERS
# ===================

def parse_sales_file(
    content: bytes,
    filename: Optional[str] = None,
    scan_rows: int = DEFAULT_SCAN_ROWS,
) -> list[SalesRecord]:
    """
    Parse a distributor sales file.

    Rows without an agent name or SKU are skipped, as are rows whose
    quantity is zero after coercion.

    Raises:
        ExcelParseError: Unreadable file
        HeaderNotFoundError: Required columns not found
        EmptyInputError: No usable rows
    """
    logger.info("parsing_sales_file", filename=filename)

    rows, _ = read_grid(content, filename)
    match = find_header_row(rows, SALES_REQUIRED_COLUMNS, scan_rows, file_kind="sales file")

    agent_col = match.columns[SALES_AGENT_COLUMN]
    sku_col = match.columns[SALES_SKU_COLUMN]
    qty_col = match.columns[SALES_QUANTITY_COLUMN]

    records: list[SalesRecord] = []
    skipped = 0

    for row in rows[match.row_index + 1:]:
        agent = clean_name(_cell(row, agent_col))
        sku = clean_name(_cell(row, sku_col))

        if not agent or not sku:
            skipped += 1
            continue

        quantity = coerce_quantity(_cell(row, qty_col))
        if quantity == 0:
            skipped += 1
            continue

        records.append(SalesRecord(
            agent_name=agent,
            market_sku=sku,
            invoice_quantity=quantity,
        ))

    if not records:
        if len(rows) > match.row_index + 1:
            logger.warning("sales_rows_all_filtered", filename=filename, skipped=skipped)
        raise EmptyInputError("sales file")

    logger.info(
        "sales_file_parsed",
        filename=filename,
        header_row=match.row_index,
        records=len(records),
        skipped=skipped,
    )

    return records


def parse_template_file(
    content: bytes,
    filename: Optional[str] = None,
    scan_rows: int = DEFAULT_SCAN_ROWS,
) -> ParsedTemplate:
    """
    Parse an operator's output template.

    Header cells keep their whitespace-normalized text and original order.
    Fully blank rows are dropped; everything else passes through.

    Raises:
        ExcelParseError: Unreadable file
        HeaderNotFoundError: Required columns not found
        EmptyInputError: Template has no data rows
    """
    logger.info("parsing_template_file", filename=filename)

    rows, sheet_name = read_grid(content, filename)
    match = find_header_row(rows, TEMPLATE_REQUIRED_COLUMNS, scan_rows, file_kind="template")

    width = len(match.headers)
    surveyor_col = match.columns[TEMPLATE_SURVEYOR_COLUMN]
    variant_col = match.columns[TEMPLATE_VARIANT_COLUMN]

    template_rows: list[TemplateRow] = []
    for row in rows[match.row_index + 1:]:
        cells = [_cell(row, col) for col in range(width)]
        if all(is_blank(cell) for cell in cells):
            continue

        cells = [None if is_blank(cell) and not isinstance(cell, str) else cell for cell in cells]
        template_rows.append(TemplateRow(
            cells=cells,
            surveyor=clean_name(cells[surveyor_col]) or "",
            variant_description=clean_name(cells[variant_col]) or "",
        ))

    if not template_rows:
        raise EmptyInputError("template file")

    logger.info(
        "template_file_parsed",
        filename=filename,
        header_row=match.row_index,
        rows=len(template_rows),
        columns=width,
    )

    return ParsedTemplate(
        headers=match.headers,
        rows=template_rows,
        quantity_column=match.columns[TEMPLATE_QUANTITY_COLUMN],
        header_row=match.row_index,
        sheet_name=sheet_name,
    )


def parse_sku_mapping_file(
    content: bytes,
    filename: Optional[str] = None,
    scan_rows: int = DEFAULT_SCAN_ROWS,
) -> ParsedSKUMappings:
    """
    Parse an SKU mapping master file (market SKU -> variant description).

    Either column may use any of the accepted spellings.

    Raises:
        ExcelParseError: Unreadable file
        HeaderNotFoundError: No SKU / description column pair found
        EmptyInputError: No complete mapping rows
    """
    logger.info("parsing_sku_mapping_file", filename=filename)

    rows, _ = read_grid(content, filename)
    header_index, sku_col, variant_col = _find_mapping_header(rows, scan_rows)

    result = ParsedSKUMappings()
    for row in rows[header_index + 1:]:
        sku = clean_name(_cell(row, sku_col))
        variant = clean_name(_cell(row, variant_col))
        if not sku or not variant:
            result.skipped_rows += 1
            continue
        result.mappings.append((sku, variant))

    if not result.mappings:
        raise EmptyInputError("SKU mapping file")

    logger.info(
        "sku_mapping_file_parsed",
        filename=filename,
        mappings=len(result.mappings),
        skipped=result.skipped_rows,
    )

    return result


def _find_mapping_header(rows: Sequence[Sequence[Any]], scan_rows: int) -> tuple[int, int, int]:
    sku_keys = [header_key(a) for a in MAPPING_SKU_ALIASES]
    variant_keys = [header_key(a) for a in MAPPING_VARIANT_ALIASES]

    for index, row in enumerate(rows[:scan_rows]):
        keys = [header_key(cell) for cell in row or []]
        sku_col = _first_alias_position(keys, sku_keys)
        variant_col = _first_alias_position(keys, variant_keys)
        if sku_col is not None and variant_col is not None:
            return index, sku_col, variant_col

    raise HeaderNotFoundError(
        [MAPPING_SKU_ALIASES[0], MAPPING_VARIANT_ALIASES[0]],
        scanned_rows=min(len(rows), scan_rows),
        file_kind="SKU mapping file",
    )


def _first_alias_position(keys: list[str], aliases: list[str]) -> Optional[int]:
    # Earlier aliases win over later ones
    for alias in aliases:
        if alias in keys:
            return keys.index(alias)
    return None


# ===================
# HELPER FUNCTIONS
# ===================

def _cell(row: Sequence[Any], index: int) -> Any:
    if row is None or index >= len(row):
        return None
    return row[index]


def coerce_quantity(value: Any) -> Decimal:
    """
    Best-effort numeric coercion; anything unparseable is zero.

    12        -> Decimal("12")
    2.232     -> Decimal("2.232")
    "1,020.5" -> Decimal("1020.5")
    "3 cases" -> Decimal("3")
    "n/a"     -> Decimal("0")
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")

    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")

    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return Decimal("0")
        return Decimal(str(value))

    if isinstance(value, str):
        match = _LEADING_NUMBER_RE.match(value.strip().replace(",", ""))
        if not match:
            return Decimal("0")
        try:
            return Decimal(match.group(0))
        except InvalidOperation:
            return Decimal("0")

    return Decimal("0")
