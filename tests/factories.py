"""
Test data factories.

Builds in-memory spreadsheets and table rows shaped like real
distributor files.
"""

import csv
from datetime import datetime
from io import BytesIO, StringIO
from typing import Any, Optional
from uuid import uuid4

from openpyxl import Workbook


class SpreadsheetFactory:
    """
    Raw file bytes from a list of rows.

    Usage:
        content = SpreadsheetFactory.xlsx([["DS Name", "Market SKU", "Invoice Qty"], ...])
        content = SpreadsheetFactory.csv(rows)
    """

    @classmethod
    def xlsx(cls, rows: list[list[Any]], sheet_name: str = "Sheet1") -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = sheet_name
        for row in rows:
            sheet.append(row)
        output = BytesIO()
        workbook.save(output)
        return output.getvalue()

    @classmethod
    def csv(cls, rows: list[list[Any]]) -> bytes:
        buffer = StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        for row in rows:
            writer.writerow(["" if cell is None else cell for cell in row])
        return buffer.getvalue().encode("utf-8")


class SalesFileFactory:
    """
    Distributor sales export.

    Usage:
        content = SalesFileFactory.create([("John", "MSKU-1", 5), ...])
    """

    HEADER = ["Invoice No", "DS Name", "Market SKU", "Invoice Qty", "Value"]

    @classmethod
    def rows(cls, sales: list[tuple], banner_rows: int = 2) -> list[list[Any]]:
        banner = [["ABC Distributors Pvt Ltd"], ["Sales Register 01-03-2026 to 31-03-2026"]]
        rows = (banner * banner_rows)[:banner_rows]
        rows.append(list(cls.HEADER))
        for i, (agent, sku, qty) in enumerate(sales, start=1):
            rows.append([f"INV-{i:04d}", agent, sku, qty, 100])
        return rows

    @classmethod
    def create(cls, sales: list[tuple], banner_rows: int = 2, fmt: str = "xlsx") -> bytes:
        rows = cls.rows(sales, banner_rows)
        return SpreadsheetFactory.xlsx(rows) if fmt == "xlsx" else SpreadsheetFactory.csv(rows)


class TemplateFactory:
    """
    Operator output template.

    Usage:
        content = TemplateFactory.create([("Alpha", "Classic RT"), ...])
    """

    HEADER = ["S.No", "SURVEYOR", "VARIANT DESCRIPTION", "QUANTITY (in M)", "Remarks"]

    @classmethod
    def rows(cls, keys: list[tuple], banner_rows: int = 1, stale_quantity: Any = 99) -> list[list[Any]]:
        rows = [["Stock Issue Format"] for _ in range(banner_rows)]
        rows.append(list(cls.HEADER))
        for i, (surveyor, variant) in enumerate(keys, start=1):
            rows.append([i, surveyor, variant, stale_quantity, f"note {i}"])
        return rows

    @classmethod
    def create(cls, keys: list[tuple], banner_rows: int = 1, fmt: str = "xlsx", **kwargs) -> bytes:
        rows = cls.rows(keys, banner_rows, **kwargs)
        return SpreadsheetFactory.xlsx(rows) if fmt == "xlsx" else SpreadsheetFactory.csv(rows)


class SKUMappingFactory:
    """Rows of the sku_mapping table."""

    @classmethod
    def create(
        cls,
        market_sku: str = "MSKU-1",
        variant_description: str = "Classic RT",
        id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> dict:
        return {
            "id": id or str(uuid4()),
            "market_sku": market_sku,
            "variant_description": variant_description,
            "created_by": created_by,
            "created_at": datetime.utcnow().isoformat() + "Z",
        }

    @classmethod
    def file(cls, pairs: list[tuple], header: tuple = ("Market SKU", "Variant Description")) -> bytes:
        return SpreadsheetFactory.xlsx([list(header)] + [list(p) for p in pairs])


class UserFactory:
    """Rows of the users table."""

    _counter = 0

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        username: Optional[str] = None,
        role: str = "user",
        status: str = "active",
    ) -> dict:
        cls._counter += 1
        now = datetime.utcnow().isoformat() + "Z"
        return {
            "id": id or str(uuid4()),
            "username": username or f"distributor_{cls._counter}",
            "role": role,
            "status": status,
            "created_at": now,
            "updated_at": now,
        }
