"""
Spreadsheet parsers.
"""

from parsers.excel_parser import (
    read_grid,
    find_header_row,
    parse_sales_file,
    parse_template_file,
    parse_sku_mapping_file,
    SalesRecord,
    TemplateRow,
    ParsedTemplate,
    ParsedSKUMappings,
)

__all__ = [
    "read_grid",
    "find_header_row",
    "parse_sales_file",
    "parse_template_file",
    "parse_sku_mapping_file",
    "SalesRecord",
    "TemplateRow",
    "ParsedTemplate",
    "ParsedSKUMappings",
]
