"""Pydantic schemas for manufacturer resolution and mapping maintenance."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from orderdesk.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class LinkMode(str, Enum):
    """Outcome kind of a product link call."""
    LINK = "link"
    UNLINK = "unlink"


# ==================== PRODUCT LINK ====================

class ProductLinkRequest(BaseCreateSchema):
    """Link (or unlink with null) a product code to a manufacturer."""
    manufacturer_id: Optional[int] = None
    product_name: Optional[str] = Field(None, max_length=500)


class ProductLinkResult(BaseModel):
    """Result of linking a product code; updated_orders counts backfilled orders."""
    mode: LinkMode
    product_code: str
    manufacturer_id: Optional[int] = None
    updated_orders: int = 0


# ==================== OPTION MAPPING ====================

class OptionMappingCreate(BaseCreateSchema):
    product_code: str = Field(..., min_length=1, max_length=255)
    option_name: str = Field(..., min_length=1, max_length=255)
    manufacturer_id: int


class OptionMappingUpdate(BaseUpdateSchema):
    product_code: Optional[str] = Field(None, min_length=1, max_length=255)
    option_name: Optional[str] = Field(None, min_length=1, max_length=255)
    manufacturer_id: Optional[int] = None


class OptionMappingResponse(BaseResponseSchema):
    id: int
    product_code: str
    option_name: str
    manufacturer_id: int
    manufacturer_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ==================== RESOLVE ====================

class ResolveResponse(BaseModel):
    product_code: str
    option_name: str
    normalized_option_name: str
    manufacturer_id: Optional[int] = None
    resolved: bool
