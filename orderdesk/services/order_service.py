"""Order ingestion from parsed upload rows, matching reports and manufacturer statistics."""
import logging
from typing import List

from sqlalchemy import and_, desc, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.core.exceptions import NotFoundError, TransactionFailureError
from orderdesk.models.manufacturer import Manufacturer, Product
from orderdesk.models.order import Order
from orderdesk.schemas.order import (
    IngestResult,
    MatchingReport,
    MissingEmailManufacturer,
    OrderRowIn,
    UnmappedProduct,
    UnmatchedProductCode,
)
from orderdesk.services.exclusion_service import evaluate_exclusion, order_is_included_sql
from orderdesk.services.resolution_service import (
    ResolutionService,
    normalize_option_name,
    normalize_product_code,
)
from orderdesk.services.rule_store import RuleStore


logger = logging.getLogger(__name__)


class OrderService:
    """Stores parsed order rows and reports on their manufacturer matching."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = RuleStore(db)
        self.resolution = ResolutionService(db)

    # ==================== INGEST ====================

    async def ingest_orders(self, rows: List[OrderRowIn]) -> IngestResult:
        """
        Persist parsed order rows.

        Rows resolve their manufacturer through the option/product cascade
        unless they already carry one, and are tagged with an exclusion
        reason. Order numbers already stored (or repeated in the batch) are
        skipped and reported as duplicates.
        """
        result = IngestResult(received=len(rows))
        if not rows:
            return result

        numbers = [row.order_number.strip() for row in rows]
        existing = set((await self.db.execute(
            select(Order.order_number).where(Order.order_number.in_(set(numbers)))
        )).scalars().all())

        resolved = await self.resolution.resolve_many(
            (row.product_code, row.option_name) for row in rows
        )

        explicit_ids = {row.manufacturer_id for row in rows if row.manufacturer_id is not None}
        candidate_ids = explicit_ids | {mid for mid in resolved.values() if mid is not None}
        manufacturers = {}
        if candidate_ids:
            manufacturers = {
                m.id: m for m in (await self.db.execute(
                    select(Manufacturer).where(Manufacturer.id.in_(candidate_ids))
                )).scalars().all()
            }
        missing = explicit_ids - manufacturers.keys()
        if missing:
            raise NotFoundError(f"Manufacturer not found: {sorted(missing)}")

        toggle = await self.store.get_exclusion_toggle()
        patterns = await self.store.list_exclusion_patterns()

        seen = set()
        for row, number in zip(rows, numbers):
            if number in existing or number in seen:
                result.duplicates.append(number)
                continue
            seen.add(number)

            code = normalize_product_code(row.product_code)
            manufacturer_id = row.manufacturer_id
            if manufacturer_id is None:
                manufacturer_id = resolved.get((code, normalize_option_name(row.option_name)))
            manufacturer = manufacturers.get(manufacturer_id) if manufacturer_id is not None else None

            excluded_reason = evaluate_exclusion(toggle, patterns, row.fulfillment_type)

            self.db.add(Order(
                order_number=number,
                product_code=code or None,
                product_name=row.product_name,
                option_name=row.option_name,
                quantity=row.quantity,
                payment_amount=row.payment_amount,
                recipient_name=row.recipient_name,
                address=row.address,
                shopping_mall=row.shopping_mall,
                fulfillment_type=row.fulfillment_type,
                excluded_reason=excluded_reason,
                status=row.status.value,
                manufacturer_id=manufacturer.id if manufacturer else None,
                manufacturer_name=manufacturer.name if manufacturer else None,
            ))

            result.created += 1
            if manufacturer:
                result.resolved += 1
            else:
                result.unresolved += 1
            if excluded_reason is not None:
                result.excluded += 1

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error ingesting {result.created} orders: {e}")
            raise TransactionFailureError("Could not store uploaded orders") from e

        logger.info(
            f"Ingested {result.created}/{result.received} orders "
            f"({result.resolved} resolved, {result.excluded} excluded, "
            f"{len(result.duplicates)} duplicates)"
        )
        return result

    # ==================== REPORTS ====================

    async def matching_report(self) -> MatchingReport:
        """
        Gaps in manufacturer matching among included (non-excluded) orders:
        unmatched product codes, products without a manufacturer, and
        manufacturers with orders but no email.
        """
        included = order_is_included_sql(Order.fulfillment_type)
        order_count = func.count(Order.id)

        missing_email_rows = await self.db.execute(
            select(Manufacturer.id, Manufacturer.name, order_count.label("order_count"))
            .join(Order, Order.manufacturer_id == Manufacturer.id)
            .where(
                included,
                or_(Manufacturer.email.is_(None), func.trim(Manufacturer.email) == ""),
            )
            .group_by(Manufacturer.id, Manufacturer.name)
            .order_by(desc(order_count), Manufacturer.name)
        )

        unmatched_rows = await self.db.execute(
            select(
                Order.product_code,
                order_count.label("order_count"),
                func.max(func.coalesce(Order.product_name, "")).label("product_name_sample"),
            )
            .where(
                included,
                Order.manufacturer_id.is_(None),
                Order.product_code.is_not(None),
                func.trim(Order.product_code) != "",
            )
            .group_by(Order.product_code)
            .order_by(desc(order_count), Order.product_code)
        )

        unmapped_rows = await self.db.execute(
            select(Product.product_code, Product.product_name, order_count.label("order_count"))
            .outerjoin(
                Order,
                and_(
                    included,
                    Order.product_code.is_not(None),
                    func.lower(func.trim(Order.product_code)) == func.lower(func.trim(Product.product_code)),
                ),
            )
            .where(Product.manufacturer_id.is_(None))
            .group_by(Product.product_code, Product.product_name)
            .order_by(desc(order_count), Product.product_code)
        )

        return MatchingReport(
            missing_email_manufacturers=[
                MissingEmailManufacturer(id=r.id, name=r.name, order_count=r.order_count)
                for r in missing_email_rows
            ],
            unmatched_product_codes=[
                UnmatchedProductCode(
                    product_code=r.product_code,
                    order_count=r.order_count,
                    product_name_sample=r.product_name_sample or "",
                )
                for r in unmatched_rows
            ],
            unmapped_products=[
                UnmappedProduct(
                    product_code=r.product_code,
                    product_name=r.product_name,
                    order_count=r.order_count,
                )
                for r in unmapped_rows
            ],
        )

    async def refresh_manufacturer_stats(self) -> int:
        """Recompute cached order_count / last_order_date from orders."""
        count_subq = (
            select(func.count(Order.id))
            .where(Order.manufacturer_id == Manufacturer.id)
            .scalar_subquery()
        )
        last_subq = (
            select(func.max(Order.created_at))
            .where(Order.manufacturer_id == Manufacturer.id)
            .scalar_subquery()
        )
        try:
            result = await self.db.execute(
                update(Manufacturer)
                .values(order_count=count_subq, last_order_date=last_subq)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error refreshing manufacturer stats: {e}")
            raise TransactionFailureError("Could not refresh manufacturer statistics") from e

        updated = result.rowcount or 0
        logger.info(f"Refreshed statistics for {updated} manufacturers")
        return updated
