"""
Order exclusion rules.

An order is excluded when exclusion checking is active and at least one
enabled pattern is a case-sensitive substring of its raw fulfillment type.
The reason comes from the earliest created matching pattern.

The rule is offered in two shapes that must agree:
- SQL expressions (order_is_excluded_sql and friends) that embed in any
  SELECT or UPDATE so bulk reports evaluate it in one statement.
- match_exclusion(), a pure function over an already loaded pattern list,
  used when rows are tagged in memory before they are stored.
"""
import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import String, and_, case, exists, func, literal, not_, null, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from orderdesk.config import settings
from orderdesk.db_types import strpos
from orderdesk.models.order import Order
from orderdesk.models.settings import ExclusionPattern, Setting
from orderdesk.schemas.exclusion import ExcludedOrder, ExcludedReasonBatch
from orderdesk.services.rule_store import EXCLUSION_ENABLED_KEY, ExclusionToggle


logger = logging.getLogger(__name__)


# ==================== PURE MATCHING ====================

def match_exclusion(
    patterns: Iterable[ExclusionPattern],
    fulfillment_type: Optional[str],
) -> Optional[ExclusionPattern]:
    """First enabled pattern contained in fulfillment_type. Patterns must be in creation order."""
    if fulfillment_type is None:
        return None
    for pattern in patterns:
        if pattern.enabled and pattern.pattern in fulfillment_type:
            return pattern
    return None


def exclusion_reason_of(pattern: ExclusionPattern) -> str:
    """Description when present, else the raw pattern text (may be empty)."""
    return pattern.description or pattern.pattern or ""


def evaluate_exclusion(
    toggle: ExclusionToggle,
    patterns: Iterable[ExclusionPattern],
    fulfillment_type: Optional[str],
) -> Optional[str]:
    """Reason an order is excluded, or None when it is included."""
    if not toggle.is_active:
        return None
    matched = match_exclusion(patterns, fulfillment_type)
    if matched is None:
        return None
    return exclusion_reason_of(matched)


# ==================== SQL PREDICATES ====================

def exclusion_enabled_sql() -> ColumnElement:
    """Global switch as SQL: 'true'/'false' parse, anything else (or no row) is true."""
    toggle = (
        select(
            case(
                (Setting.value.in_(("true", "false")), Setting.value == "true"),
                else_=true(),
            )
        )
        .where(Setting.key == EXCLUSION_ENABLED_KEY)
        .scalar_subquery()
    )
    return func.coalesce(toggle, true())


def _pattern_matches(fulfillment_type: ColumnElement) -> ColumnElement:
    return and_(
        ExclusionPattern.enabled == True,
        strpos(fulfillment_type, ExclusionPattern.pattern) > 0,
    )


def order_is_excluded_sql(fulfillment_type: ColumnElement) -> ColumnElement:
    """Boolean SQL expression: the order is excluded."""
    any_match = exists(
        select(ExclusionPattern.id)
        .where(_pattern_matches(fulfillment_type))
        .correlate_except(ExclusionPattern)
    )
    return and_(exclusion_enabled_sql() == true(), any_match)


def order_is_included_sql(fulfillment_type: ColumnElement) -> ColumnElement:
    return not_(order_is_excluded_sql(fulfillment_type))


def order_excluded_reason_sql(fulfillment_type: ColumnElement) -> ColumnElement:
    """Reason of the earliest created matching pattern, NULL when included."""
    reason = (
        select(
            func.coalesce(
                func.nullif(ExclusionPattern.description, ""),
                ExclusionPattern.pattern,
            )
        )
        .where(_pattern_matches(fulfillment_type))
        .order_by(ExclusionPattern.created_at, ExclusionPattern.id)
        .limit(1)
        .correlate_except(ExclusionPattern)
        .scalar_subquery()
    )
    return case((exclusion_enabled_sql() == true(), reason), else_=null())


# ==================== SERVICE ====================

class ExclusionService:
    """Exclusion queries for single values and for order reports."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_excluded(self, fulfillment_type: Optional[str]) -> bool:
        if fulfillment_type is None:
            return False
        value = literal(fulfillment_type, type_=String)
        result = await self.db.execute(select(order_is_excluded_sql(value).label("excluded")))
        return bool(result.scalar())

    async def exclusion_reason(self, fulfillment_type: Optional[str]) -> Optional[str]:
        """Reason text, or None when not excluded. An empty string means a match without text."""
        if fulfillment_type is None:
            return None
        value = literal(fulfillment_type, type_=String)
        result = await self.db.execute(select(order_excluded_reason_sql(value).label("reason")))
        return result.scalar()

    async def excluded_batches(self) -> List[ExcludedReasonBatch]:
        """
        Excluded orders grouped by reason.

        Batches are sorted by order count (desc), then reason. Orders with
        a blank reason are grouped under the configured placeholder.
        """
        stmt = (
            select(Order, order_excluded_reason_sql(Order.fulfillment_type).label("reason"))
            .where(order_is_excluded_sql(Order.fulfillment_type))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        result = await self.db.execute(stmt)

        batches: "OrderedDict[str, ExcludedReasonBatch]" = OrderedDict()
        for order, raw_reason in result.all():
            reason = (raw_reason or "").strip() or settings.EXCLUDED_REASON_PLACEHOLDER
            batch = batches.get(reason)
            if batch is None:
                batch = ExcludedReasonBatch(reason=reason)
                batches[reason] = batch
            batch.orders.append(ExcludedOrder.model_validate(order))

        for batch in batches.values():
            batch.total_orders = len(batch.orders)
            batch.total_amount = sum(
                (Decimal(o.payment_amount or 0) for o in batch.orders),
                Decimal("0"),
            )

        logger.debug(f"Excluded batches: {len(batches)}")
        return sorted(batches.values(), key=lambda b: (-b.total_orders, b.reason))
