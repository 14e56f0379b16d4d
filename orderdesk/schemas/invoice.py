"""Pydantic schemas for invoice (courier / tracking) reconciliation."""
from enum import Enum
from typing import Optional, List, Dict

from pydantic import BaseModel, Field

from orderdesk.schemas.base import BaseCreateSchema


class RowOutcome(str, Enum):
    """Per-row classification. Returned, never raised."""
    SUCCESS = "success"
    ORDER_NOT_FOUND = "order_not_found"
    COURIER_ERROR = "courier_error"


class InvoiceRow(BaseCreateSchema):
    """One row already extracted from a manufacturer's invoice file."""
    order_number: str = Field(..., max_length=100)
    courier_name: str = ""
    tracking_number: str = ""


class InvoiceRowResult(BaseModel):
    order_number: str
    status: RowOutcome
    courier_code: str = ""
    tracking_number: str = ""
    original_courier: Optional[str] = None
    error_message: Optional[str] = None


class ReconcileRequest(BaseCreateSchema):
    manufacturer_id: int
    manufacturer_name: Optional[str] = None
    rows: List[InvoiceRow]


class ReconcileResult(BaseModel):
    manufacturer_id: int
    manufacturer_name: str
    success: bool = True
    error_message: Optional[str] = None
    applied_count: int = 0
    results: List[InvoiceRowResult] = []
    summary: Dict[str, int] = {}
