"""Pydantic schemas for manufacturers."""
from datetime import datetime
from typing import Optional

from pydantic import Field

from orderdesk.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class ManufacturerCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=255)
    contact_name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    cc_email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)


class ManufacturerUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    cc_email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)


class ManufacturerResponse(BaseResponseSchema):
    id: int
    name: str
    contact_name: Optional[str] = None
    email: Optional[str] = None
    cc_email: Optional[str] = None
    phone: Optional[str] = None
    order_count: int = 0
    last_order_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
