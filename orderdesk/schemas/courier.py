"""Pydantic schemas for courier name/alias mappings."""
from datetime import datetime
from typing import Optional, List

from pydantic import Field, field_validator

from orderdesk.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


def clean_aliases(aliases: Optional[List[str]]) -> Optional[List[str]]:
    """Trim aliases and drop blanks."""
    if aliases is None:
        return None
    return [alias.strip() for alias in aliases if alias and alias.strip()]


class CourierMappingCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=10)
    aliases: List[str] = []
    enabled: bool = True

    @field_validator('aliases', mode='before')
    @classmethod
    def normalize_aliases(cls, v):
        return clean_aliases(v) or []


class CourierMappingUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=10)
    aliases: Optional[List[str]] = None
    enabled: Optional[bool] = None

    @field_validator('aliases', mode='before')
    @classmethod
    def normalize_aliases(cls, v):
        return clean_aliases(v)


class CourierMappingResponse(BaseResponseSchema):
    id: int
    name: str
    code: str
    aliases: List[str] = []
    enabled: bool
    created_at: datetime

    @field_validator('aliases', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return v or []
