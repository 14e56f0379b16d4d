"""
Invoice reconciliation: apply courier / tracking numbers returned by a
manufacturer back onto stored orders.

Each invoice row ends in exactly one outcome:
    order_not_found  - no stored order has the row's order number
    courier_error    - order exists but the courier name has no mapping
    success          - order exists and the courier resolves to a code

Bad rows never block good ones. All success rows are written as one
transaction: either every one of them is applied or none is.
"""
import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.config import settings
from orderdesk.core.exceptions import InvalidInputError, NotFoundError, TransactionFailureError
from orderdesk.models.order import Order
from orderdesk.models.settings import CourierMapping
from orderdesk.schemas.invoice import InvoiceRow, InvoiceRowResult, ReconcileResult, RowOutcome
from orderdesk.services.rule_store import RuleStore


logger = logging.getLogger(__name__)

ORDER_NOT_FOUND_MESSAGE = "Order number not found"


def build_courier_lookup(mappings: Iterable[CourierMapping]) -> Dict[str, str]:
    """Lowercased courier name and aliases -> courier code, enabled mappings only."""
    lookup: Dict[str, str] = {}
    for mapping in mappings:
        if not mapping.enabled:
            continue
        lookup[mapping.name.strip().lower()] = mapping.code
        for alias in mapping.aliases or []:
            lookup[alias.strip().lower()] = mapping.code
    return lookup


def classify_invoice_row(
    row: InvoiceRow,
    courier_lookup: Dict[str, str],
    order_ids: Dict[str, int],
) -> InvoiceRowResult:
    order_number = row.order_number.strip()
    tracking_number = row.tracking_number.strip()

    if order_number not in order_ids:
        return InvoiceRowResult(
            order_number=order_number,
            status=RowOutcome.ORDER_NOT_FOUND,
            tracking_number=tracking_number,
            error_message=ORDER_NOT_FOUND_MESSAGE,
        )

    courier_code = courier_lookup.get(row.courier_name.strip().lower())
    if not courier_code:
        return InvoiceRowResult(
            order_number=order_number,
            status=RowOutcome.COURIER_ERROR,
            tracking_number=tracking_number,
            original_courier=row.courier_name,
            error_message=f"Unknown courier: {row.courier_name}",
        )

    return InvoiceRowResult(
        order_number=order_number,
        status=RowOutcome.SUCCESS,
        courier_code=courier_code,
        tracking_number=tracking_number,
    )


def summarize(results: Sequence[InvoiceRowResult]) -> Dict[str, int]:
    """Row count per outcome, every outcome present."""
    counts = Counter(result.status for result in results)
    return {outcome.value: counts.get(outcome, 0) for outcome in RowOutcome}


class InvoiceReconciliationService:
    """Matches invoice rows to orders and applies courier / tracking updates."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = RuleStore(db)

    async def reconcile(
        self,
        manufacturer_id: int,
        rows: List[InvoiceRow],
        manufacturer_name: Optional[str] = None,
    ) -> ReconcileResult:
        """
        Classify every row and apply the success subset atomically.

        Raises InvalidInputError / NotFoundError before any read of orders.
        A failed apply is reported through success=False with
        applied_count=0; the per-row results are still returned.
        """
        if len(rows) > settings.INVOICE_MAX_ROWS:
            raise InvalidInputError(
                f"Invoice has {len(rows)} rows; at most {settings.INVOICE_MAX_ROWS} are accepted"
            )

        manufacturer = await self.store.get_manufacturer(manufacturer_id)
        if not manufacturer:
            raise NotFoundError(f"Manufacturer {manufacturer_id} not found")

        result = ReconcileResult(
            manufacturer_id=manufacturer.id,
            manufacturer_name=manufacturer_name or manufacturer.name,
        )
        if not rows:
            result.summary = summarize([])
            return result

        courier_lookup = build_courier_lookup(await self.store.list_courier_mappings(enabled_only=True))
        order_ids = await self._fetch_order_ids(row.order_number.strip() for row in rows)

        # One update per order; a repeated order number keeps its last row
        updates: Dict[int, dict] = {}
        for row in rows:
            row_result = classify_invoice_row(row, courier_lookup, order_ids)
            result.results.append(row_result)
            if row_result.status == RowOutcome.SUCCESS:
                order_id = order_ids[row_result.order_number]
                updates[order_id] = {
                    "id": order_id,
                    "courier": row_result.courier_code,
                    "tracking_number": row_result.tracking_number,
                }

        result.summary = summarize(result.results)

        try:
            result.applied_count = await self._apply_updates(list(updates.values()))
        except TransactionFailureError as e:
            result.success = False
            result.applied_count = 0
            result.error_message = e.message
            return result

        logger.info(
            f"Invoice for {result.manufacturer_name}: {result.applied_count} applied, "
            f"{result.summary[RowOutcome.ORDER_NOT_FOUND.value]} order not found, "
            f"{result.summary[RowOutcome.COURIER_ERROR.value]} courier errors"
        )
        return result

    async def _fetch_order_ids(self, order_numbers: Iterable[str]) -> Dict[str, int]:
        """order_number -> id for the invoice's order numbers, one query."""
        numbers = {number for number in order_numbers if number}
        if not numbers:
            return {}
        rows = await self.db.execute(
            select(Order.order_number, Order.id).where(Order.order_number.in_(numbers))
        )
        return {row.order_number: row.id for row in rows}

    async def _apply_updates(self, updates: List[dict]) -> int:
        """Write all courier / tracking updates in one transaction."""
        if not updates:
            return 0
        try:
            await self.db.execute(update(Order), updates)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Invoice apply rolled back ({len(updates)} orders): {e}")
            raise TransactionFailureError(
                "Invoice update failed; no orders were changed",
                details={"attempted": len(updates)},
            ) from e
        return len(updates)
