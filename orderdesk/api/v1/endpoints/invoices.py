"""Invoice reconciliation API endpoints."""
import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from orderdesk.api.deps import DB
from orderdesk.schemas.invoice import ReconcileRequest, ReconcileResult
from orderdesk.services.invoice_service import InvoiceReconciliationService


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/reconcile", response_model=ReconcileResult)
async def reconcile_invoice(data: ReconcileRequest, db: DB):
    """
    Apply courier / tracking numbers from a parsed manufacturer invoice.

    Returns one result per row. If the update transaction fails the body
    is the same shape with success=false and the status is 409.
    """
    service = InvoiceReconciliationService(db)
    result = await service.reconcile(
        data.manufacturer_id,
        data.rows,
        manufacturer_name=data.manufacturer_name,
    )
    if not result.success:
        logger.warning(f"Invoice reconcile failed for manufacturer {data.manufacturer_id}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=result.model_dump(mode="json"),
        )
    return result
