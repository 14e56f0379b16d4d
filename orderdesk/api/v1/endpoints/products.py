"""Product to manufacturer links and resolution lookups."""
from typing import Optional

from fastapi import APIRouter, Query

from orderdesk.api.deps import DB
from orderdesk.schemas.resolution import ProductLinkRequest, ProductLinkResult, ResolveResponse
from orderdesk.services.resolution_service import (
    ResolutionService,
    normalize_option_name,
    normalize_product_code,
)


router = APIRouter()


@router.put("/products/{product_code}/manufacturer", response_model=ProductLinkResult)
async def link_product_manufacturer(
    product_code: str,
    data: ProductLinkRequest,
    db: DB,
):
    """
    Link a product code to a manufacturer (null manufacturer_id unlinks).
    Unmatched, non-excluded, non-completed orders with the code are backfilled.
    """
    service = ResolutionService(db)
    return await service.link_product_to_manufacturer(
        product_code,
        data.manufacturer_id,
        product_name_hint=data.product_name,
    )


@router.get("/resolve", response_model=ResolveResponse)
async def resolve_manufacturer(
    db: DB,
    product_code: str = Query(..., min_length=1),
    option_name: Optional[str] = Query(None),
):
    """Which manufacturer an order line with this product and option would go to."""
    manufacturer_id = await ResolutionService(db).resolve(product_code, option_name)
    return ResolveResponse(
        product_code=normalize_product_code(product_code),
        option_name=option_name or "",
        normalized_option_name=normalize_option_name(option_name),
        manufacturer_id=manufacturer_id,
        resolved=manufacturer_id is not None,
    )
