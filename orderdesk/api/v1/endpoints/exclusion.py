"""Exclusion settings, patterns and excluded order reports."""
from fastapi import APIRouter, Query, status

from orderdesk.api.deps import DB
from orderdesk.schemas.exclusion import (
    ExcludedReasonBatch,
    ExclusionCheckResponse,
    ExclusionPatternCreate,
    ExclusionPatternResponse,
    ExclusionPatternUpdate,
    ExclusionSettingsResponse,
    ExclusionToggleUpdate,
)
from orderdesk.services.exclusion_service import ExclusionService
from orderdesk.services.rule_store import RuleStore


router = APIRouter()


@router.get("", response_model=ExclusionSettingsResponse)
async def get_exclusion_settings(db: DB):
    store = RuleStore(db)
    toggle = await store.get_exclusion_toggle()
    patterns = await store.list_exclusion_patterns()
    return ExclusionSettingsResponse(
        enabled=toggle.is_active,
        toggle=toggle.value,
        patterns=[ExclusionPatternResponse.model_validate(p) for p in patterns],
    )


@router.put("/toggle", response_model=ExclusionSettingsResponse)
async def update_exclusion_toggle(data: ExclusionToggleUpdate, db: DB):
    await RuleStore(db).set_exclusion_enabled(data.enabled)
    return await get_exclusion_settings(db)


@router.post("/patterns", response_model=ExclusionPatternResponse, status_code=status.HTTP_201_CREATED)
async def add_exclusion_pattern(data: ExclusionPatternCreate, db: DB):
    return await RuleStore(db).add_exclusion_pattern(data)


@router.patch("/patterns/{pattern_id}", response_model=ExclusionPatternResponse)
async def update_exclusion_pattern(pattern_id: int, data: ExclusionPatternUpdate, db: DB):
    return await RuleStore(db).update_exclusion_pattern(pattern_id, data)


@router.delete("/patterns/{pattern_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_exclusion_pattern(pattern_id: int, db: DB):
    await RuleStore(db).remove_exclusion_pattern(pattern_id)


@router.get("/check", response_model=ExclusionCheckResponse)
async def check_fulfillment_type(
    db: DB,
    fulfillment_type: str = Query(...),
):
    """Whether an order with this fulfillment type would be excluded, and why."""
    service = ExclusionService(db)
    return ExclusionCheckResponse(
        fulfillment_type=fulfillment_type,
        excluded=await service.is_excluded(fulfillment_type),
        reason=await service.exclusion_reason(fulfillment_type),
    )


@router.get("/excluded-orders", response_model=list[ExcludedReasonBatch])
async def list_excluded_orders(db: DB):
    """Excluded orders grouped by reason."""
    return await ExclusionService(db).excluded_batches()
