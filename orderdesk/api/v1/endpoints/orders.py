"""Order ingestion and matching report endpoints."""
from typing import List

from fastapi import APIRouter, status

from orderdesk.api.deps import DB
from orderdesk.schemas.order import IngestResult, MatchingReport, OrderRowIn
from orderdesk.services.order_service import OrderService


router = APIRouter()


@router.post("/ingest", response_model=IngestResult, status_code=status.HTTP_201_CREATED)
async def ingest_orders(rows: List[OrderRowIn], db: DB):
    """Store order rows parsed from an upload, resolving manufacturer and exclusion."""
    return await OrderService(db).ingest_orders(rows)


@router.get("/matching", response_model=MatchingReport)
async def get_matching_report(db: DB):
    """Unmatched product codes, unmapped products and manufacturers missing an email."""
    return await OrderService(db).matching_report()


@router.post("/manufacturer-stats/refresh")
async def refresh_manufacturer_stats(db: DB):
    updated = await OrderService(db).refresh_manufacturer_stats()
    return {"updated": updated}
