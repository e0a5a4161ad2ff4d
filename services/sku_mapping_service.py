"""
SKU mapping service: market SKU -> variant description pairs.
"""

from typing import Optional
import structlog

from models.sku_mapping import (
    SKUMappingCreate,
    SKUMappingUpdate,
    SKUMappingResponse,
    SKUMappingBulkUploadResponse,
)
from models.user import Operator
from parsers.excel_parser import parse_sku_mapping_file
from exceptions import SKUMappingNotFoundError

logger = structlog.get_logger(__name__)


class SKUMappingService:
    """
    SKU mapping business logic.

    The table is shared by every operator; writes are last-writer-wins.
    """

    def __init__(self, backend=None):
        self._backend = backend

    @property
    def repo(self):
        if self._backend is None:
            from services.backend import get_backend
            return get_backend().sku_mappings
        return self._backend.sku_mappings

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(self) -> list[SKUMappingResponse]:
        """All mapping rows, ordered by market SKU."""
        rows = self.repo.list(order_by="market_sku")
        logger.info("sku_mappings_retrieved", count=len(rows))
        return [SKUMappingResponse(**row) for row in rows]

    def get_by_id(self, mapping_id: str) -> SKUMappingResponse:
        row = self.repo.get(mapping_id)
        if row is None:
            raise SKUMappingNotFoundError(mapping_id)
        return SKUMappingResponse(**row)

    def list_pairs(self) -> list[tuple[str, str]]:
        """(market SKU, variant description) pairs for the reconciliation join."""
        return [
            (row["market_sku"], row["variant_description"])
            for row in self.repo.list()
            if row.get("market_sku") and row.get("variant_description")
        ]

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: SKUMappingCreate, operator: Optional[Operator] = None) -> SKUMappingResponse:
        logger.info("creating_sku_mapping", market_sku=data.market_sku)
        rows = self.repo.insert({
            "market_sku": data.market_sku,
            "variant_description": data.variant_description,
            "created_by": operator.id if operator else None,
        })
        return SKUMappingResponse(**rows[0])

    def update(self, mapping_id: str, data: SKUMappingUpdate) -> SKUMappingResponse:
        """Update only the provided fields."""
        self.get_by_id(mapping_id)

        changes = data.model_dump(exclude_none=True)
        if not changes:
            return self.get_by_id(mapping_id)

        logger.info("updating_sku_mapping", mapping_id=mapping_id, fields=list(changes))
        row = self.repo.update(mapping_id, changes)
        if row is None:
            raise SKUMappingNotFoundError(mapping_id)
        return SKUMappingResponse(**row)

    def delete(self, mapping_id: str) -> None:
        self.get_by_id(mapping_id)
        self.repo.delete({"id": mapping_id})
        logger.info("sku_mapping_deleted", mapping_id=mapping_id)

    def bulk_replace(
        self,
        content: bytes,
        filename: str,
        operator: Optional[Operator] = None,
    ) -> SKUMappingBulkUploadResponse:
        """
        Replace the whole table from an uploaded master file.

        The file is parsed first, so a bad file leaves the table untouched.
        Delete and insert are two separate calls with no transaction
        around them.
        """
        from config import get_settings

        parsed = parse_sku_mapping_file(content, filename, get_settings().header_scan_rows)

        seen = set()
        rows = []
        for market_sku, variant in parsed.mappings:
            if (market_sku, variant) in seen:
                continue
            seen.add((market_sku, variant))
            rows.append({
                "market_sku": market_sku,
                "variant_description": variant,
                "created_by": operator.id if operator else None,
            })

        deleted = self.repo.delete_all()
        inserted = self.repo.insert(rows)

        logger.info(
            "sku_mappings_replaced",
            filename=filename,
            deleted=deleted,
            inserted=len(inserted),
            skipped=parsed.skipped_rows,
        )

        return SKUMappingBulkUploadResponse(
            inserted=len(inserted),
            deleted=deleted,
            skipped_rows=parsed.skipped_rows,
        )


# Singleton instance
_sku_mapping_service: Optional[SKUMappingService] = None


def get_sku_mapping_service() -> SKUMappingService:
    """Get or create SKUMappingService instance."""
    global _sku_mapping_service
    if _sku_mapping_service is None:
        _sku_mapping_service = SKUMappingService()
    return _sku_mapping_service
