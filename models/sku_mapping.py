"""
SKU mapping schemas.

One market SKU may map to several variant descriptions; each pair is one row.
"""

from pydantic import BaseModel, Field
from typing import Optional

from models.base import BaseSchema, TimestampMixin


class SKUMappingCreate(BaseSchema):
    """Add one (market SKU, variant description) pair."""

    market_sku: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="SKU as written in distributor sales files",
        examples=["MSKU-1042"]
    )
    variant_description: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Variant description as written in the template",
        examples=["Cement 50kg OPC"]
    )


class SKUMappingUpdate(BaseSchema):
    """
    Update an existing pair.

    All fields optional - only provided fields are updated.
    """

    market_sku: Optional[str] = Field(None, min_length=1, max_length=255)
    variant_description: Optional[str] = Field(None, min_length=1, max_length=255)


class SKUMappingResponse(BaseSchema, TimestampMixin):
    """Stored mapping row."""
    id: str
    market_sku: str
    variant_description: str
    created_by: Optional[str] = None


class SKUMappingListResponse(BaseModel):
    """All mapping rows."""
    data: list[SKUMappingResponse]
    total: int


class SKUMappingBulkUploadResponse(BaseModel):
    """Result of replacing the table from a file."""
    inserted: int
    deleted: int
    skipped_rows: int = 0
