"""Pydantic schemas for order ingestion and matching reports."""
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from orderdesk.models.order import OrderStatus
from orderdesk.schemas.base import BaseCreateSchema


class OrderRowIn(BaseCreateSchema):
    """An order row already parsed from an upload file."""
    order_number: str = Field(..., min_length=1, max_length=100)
    product_code: Optional[str] = Field(None, max_length=100)
    product_name: Optional[str] = Field(None, max_length=500)
    option_name: Optional[str] = Field(None, max_length=255)
    quantity: int = Field(1, ge=0)
    payment_amount: Decimal = Decimal("0")
    recipient_name: Optional[str] = None
    address: Optional[str] = None
    shopping_mall: Optional[str] = None
    fulfillment_type: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    manufacturer_id: Optional[int] = None


class IngestResult(BaseModel):
    received: int = 0
    created: int = 0
    duplicates: List[str] = []
    resolved: int = 0
    unresolved: int = 0
    excluded: int = 0


class UnmatchedProductCode(BaseModel):
    product_code: str
    order_count: int
    product_name_sample: str = ""


class UnmappedProduct(BaseModel):
    product_code: str
    product_name: str
    order_count: int


class MissingEmailManufacturer(BaseModel):
    id: int
    name: str
    order_count: int


class MatchingReport(BaseModel):
    unmatched_product_codes: List[UnmatchedProductCode] = []
    unmapped_products: List[UnmappedProduct] = []
    missing_email_manufacturers: List[MissingEmailManufacturer] = []
