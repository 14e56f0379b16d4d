"""Manufacturer API endpoints."""
from fastapi import APIRouter, status

from orderdesk.api.deps import DB
from orderdesk.core.exceptions import NotFoundError
from orderdesk.schemas.manufacturer import ManufacturerCreate, ManufacturerUpdate, ManufacturerResponse
from orderdesk.services.rule_store import RuleStore


router = APIRouter()


@router.get("", response_model=list[ManufacturerResponse])
async def list_manufacturers(db: DB):
    """Get all manufacturers ordered by name."""
    return await RuleStore(db).list_manufacturers()


@router.get("/{manufacturer_id}", response_model=ManufacturerResponse)
async def get_manufacturer(manufacturer_id: int, db: DB):
    manufacturer = await RuleStore(db).get_manufacturer(manufacturer_id)
    if not manufacturer:
        raise NotFoundError(f"Manufacturer {manufacturer_id} not found")
    return manufacturer


@router.post("", response_model=ManufacturerResponse, status_code=status.HTTP_201_CREATED)
async def create_manufacturer(data: ManufacturerCreate, db: DB):
    return await RuleStore(db).add_manufacturer(data)


@router.patch("/{manufacturer_id}", response_model=ManufacturerResponse)
async def update_manufacturer(manufacturer_id: int, data: ManufacturerUpdate, db: DB):
    """Update contact details or rename; orders keep showing the current name."""
    return await RuleStore(db).update_manufacturer(manufacturer_id, data)


@router.delete("/{manufacturer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_manufacturer(manufacturer_id: int, db: DB):
    """
    Delete a manufacturer that has no orders.
    Its option mappings are removed and its products become unmapped.
    """
    await RuleStore(db).remove_manufacturer(manufacturer_id)
