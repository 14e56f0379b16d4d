"""Courier mapping API endpoints."""
from fastapi import APIRouter, status

from orderdesk.api.deps import DB
from orderdesk.schemas.courier import CourierMappingCreate, CourierMappingUpdate, CourierMappingResponse
from orderdesk.services.rule_store import RuleStore


router = APIRouter()


@router.get("", response_model=list[CourierMappingResponse])
async def list_courier_mappings(db: DB):
    return await RuleStore(db).list_courier_mappings()


@router.post("", response_model=CourierMappingResponse, status_code=status.HTTP_201_CREATED)
async def add_courier_mapping(data: CourierMappingCreate, db: DB):
    return await RuleStore(db).add_courier_mapping(data)


@router.patch("/{mapping_id}", response_model=CourierMappingResponse)
async def update_courier_mapping(mapping_id: int, data: CourierMappingUpdate, db: DB):
    return await RuleStore(db).update_courier_mapping(mapping_id, data)


@router.delete("/{mapping_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_courier_mapping(mapping_id: int, db: DB):
    await RuleStore(db).remove_courier_mapping(mapping_id)
