"""Option mapping API endpoints."""
from typing import Optional

from fastapi import APIRouter, Query, status

from orderdesk.api.deps import DB
from orderdesk.models.manufacturer import OptionMapping
from orderdesk.schemas.resolution import OptionMappingCreate, OptionMappingUpdate, OptionMappingResponse
from orderdesk.services.resolution_service import ResolutionService
from orderdesk.services.rule_store import RuleStore


router = APIRouter()


async def _to_response(store: RuleStore, mapping: OptionMapping) -> OptionMappingResponse:
    manufacturer = await store.get_manufacturer(mapping.manufacturer_id)
    response = OptionMappingResponse.model_validate(mapping)
    response.manufacturer_name = manufacturer.name if manufacturer else None
    return response


@router.get("", response_model=list[OptionMappingResponse])
async def list_option_mappings(
    db: DB,
    product_code: Optional[str] = Query(None),
):
    """Get option mappings, newest first."""
    store = RuleStore(db)
    mappings = await store.list_option_mappings(product_code=product_code)
    return [await _to_response(store, m) for m in mappings]


@router.post("", response_model=OptionMappingResponse, status_code=status.HTTP_201_CREATED)
async def create_option_mapping(data: OptionMappingCreate, db: DB):
    """Create or replace the mapping for (product code, option) and backfill matching orders."""
    mapping = await ResolutionService(db).link_option(
        data.product_code,
        data.option_name,
        data.manufacturer_id,
    )
    return await _to_response(RuleStore(db), mapping)


@router.patch("/{mapping_id}", response_model=OptionMappingResponse)
async def update_option_mapping(mapping_id: int, data: OptionMappingUpdate, db: DB):
    mapping = await ResolutionService(db).update_option_mapping(mapping_id, data)
    return await _to_response(RuleStore(db), mapping)


@router.delete("/{mapping_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_option_mapping(mapping_id: int, db: DB):
    """Delete a mapping. Orders already assigned are left as they are."""
    await ResolutionService(db).remove_option_mapping(mapping_id)
