"""Base schema classes shared by request and response models."""
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """Response schemas built from ORM objects."""
    model_config = ConfigDict(from_attributes=True)


class BaseCreateSchema(BaseModel):
    """Create/input schemas; unknown fields are ignored."""
    model_config = ConfigDict(extra='ignore')


class BaseUpdateSchema(BaseModel):
    """Partial update schemas; only fields that were sent are applied (exclude_unset)."""
    model_config = ConfigDict(extra='ignore')
