"""Pydantic schemas for order exclusion rules and reports."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from orderdesk.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class ExclusionPatternCreate(BaseCreateSchema):
    pattern: str = Field(..., max_length=255)
    description: Optional[str] = None
    enabled: bool = True


class ExclusionPatternUpdate(BaseUpdateSchema):
    pattern: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    enabled: Optional[bool] = None


class ExclusionPatternResponse(BaseResponseSchema):
    id: int
    pattern: str
    description: Optional[str] = None
    enabled: bool
    created_at: datetime


class ExclusionToggleUpdate(BaseModel):
    enabled: bool


class ExclusionSettingsResponse(BaseModel):
    enabled: bool
    toggle: str
    patterns: List[ExclusionPatternResponse]


class ExclusionCheckResponse(BaseModel):
    fulfillment_type: str
    excluded: bool
    reason: Optional[str] = None


class ExcludedOrder(BaseResponseSchema):
    id: int
    order_number: str
    product_code: Optional[str] = None
    product_name: Optional[str] = None
    option_name: Optional[str] = None
    quantity: int
    payment_amount: Decimal
    recipient_name: Optional[str] = None
    manufacturer_id: Optional[int] = None
    manufacturer_name: Optional[str] = None
    status: str
    fulfillment_type: Optional[str] = None
    created_at: datetime


class ExcludedReasonBatch(BaseModel):
    """Excluded orders sharing one reason."""
    reason: str
    orders: List[ExcludedOrder] = []
    total_orders: int = 0
    total_amount: Decimal = Decimal("0")
