"""
Manufacturer resolution for order lines.

Resolution cascade (deterministic, read-only):
    1. OptionMapping on the exact (product code, normalized option) pair
    2. Product mapping for the product code, when it names a manufacturer
    3. unresolved (None)

Link operations upsert a mapping and backfill eligible orders in the same
transaction. Eligible orders have no manufacturer yet, are not excluded,
are not completed, and match the product code ignoring case and
surrounding whitespace. Backfill only ever fills empty manufacturer
fields, so re-running a link touches nothing new.

Two concurrent links for the same product code are last-writer-wins on
the product row; each backfill counts the rows its own statement updated
under the store's isolation level, so a true interleaving may under- or
double-report. Run under SERIALIZABLE (or an advisory lock on the code)
where exact counts matter.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Set, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.core.exceptions import InvalidInputError, NotFoundError, TransactionFailureError
from orderdesk.models.manufacturer import Manufacturer, Product, OptionMapping
from orderdesk.models.order import Order, OrderStatus
from orderdesk.schemas.resolution import LinkMode, OptionMappingUpdate, ProductLinkResult
from orderdesk.services.exclusion_service import order_is_included_sql
from orderdesk.services.rule_store import RuleStore


logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_QUANTITY_SUFFIX_RE = re.compile(r"\s*\[\d+\]\s*$")
_DOTS_ONLY_RE = re.compile(r"^[.\s]+$")

# Marketplaces export this literal ("none") for products without options
NO_OPTION_LITERAL = "없음"


def normalize_option_name(raw: Optional[str]) -> str:
    """
    Canonical option text used as the OptionMapping key.

    - non-breaking spaces become spaces, then trim
    - runs of whitespace collapse to one space
    - a trailing bracketed quantity such as "[2]" is dropped
    - values made only of dots, and the "없음" literal, become ""

    >>> normalize_option_name("Red  / Large [2]")
    'Red / Large'
    """
    if not raw:
        return ""
    trimmed = raw.replace("\u00a0", " ").strip()
    if not trimmed:
        return ""

    collapsed = _WHITESPACE_RE.sub(" ", trimmed)
    without_quantity = _QUANTITY_SUFFIX_RE.sub("", collapsed).strip()
    if not without_quantity:
        return ""
    if _DOTS_ONLY_RE.match(without_quantity):
        return ""
    if without_quantity == NO_OPTION_LITERAL:
        return ""
    return without_quantity


def normalize_product_code(raw: Optional[str]) -> str:
    return (raw or "").strip()


def _product_code_matches(product_code: str):
    return func.lower(func.trim(Order.product_code)) == func.lower(product_code)


class ResolutionService:
    """Resolves order lines to manufacturers and maintains product/option links."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = RuleStore(db)

    # ==================== RESOLVE ====================

    async def resolve(self, product_code: Optional[str], option_name: Optional[str]) -> Optional[int]:
        """Manufacturer id owning (product_code, option_name), or None."""
        code = normalize_product_code(product_code)
        if not code:
            return None

        option = normalize_option_name(option_name)
        if option:
            mapping = await self.store.get_option_mapping(code, option)
            if mapping:
                return mapping.manufacturer_id

        product = await self.store.get_product(code)
        if product and product.manufacturer_id is not None:
            return product.manufacturer_id
        return None

    async def resolve_many(
        self,
        pairs: Iterable[Tuple[Optional[str], Optional[str]]],
    ) -> Dict[Tuple[str, str], Optional[int]]:
        """
        Same cascade as resolve() for a batch, in two queries.

        Keys are (normalized code, normalized option).
        """
        keys: Set[Tuple[str, str]] = {
            (normalize_product_code(code), normalize_option_name(option))
            for code, option in pairs
        }
        codes = {code for code, _ in keys if code}
        if not codes:
            return {key: None for key in keys}

        option_rows = await self.db.execute(
            select(OptionMapping.product_code, OptionMapping.option_name, OptionMapping.manufacturer_id)
            .where(OptionMapping.product_code.in_(codes))
        )
        by_option = {(row.product_code, row.option_name): row.manufacturer_id for row in option_rows}

        product_rows = await self.db.execute(
            select(Product.product_code, Product.manufacturer_id)
            .where(Product.product_code.in_(codes), Product.manufacturer_id.is_not(None))
        )
        by_product = {row.product_code: row.manufacturer_id for row in product_rows}

        resolved: Dict[Tuple[str, str], Optional[int]] = {}
        for code, option in keys:
            if not code:
                resolved[(code, option)] = None
            elif option and (code, option) in by_option:
                resolved[(code, option)] = by_option[(code, option)]
            else:
                resolved[(code, option)] = by_product.get(code)
        return resolved

    # ==================== PRODUCT LINK ====================

    async def link_product_to_manufacturer(
        self,
        product_code: str,
        manufacturer_id: Optional[int],
        product_name_hint: Optional[str] = None,
    ) -> ProductLinkResult:
        """
        Link a product code to a manufacturer and backfill eligible orders.

        With manufacturer_id=None only the product row is cleared; orders
        keep whatever manufacturer they already carry.
        """
        code = normalize_product_code(product_code)
        if not code:
            raise InvalidInputError("Product code is required")

        if manufacturer_id is None:
            return await self._unlink_product(code)

        manufacturer = await self.store.get_manufacturer(manufacturer_id)
        if not manufacturer:
            raise NotFoundError(f"Manufacturer {manufacturer_id} not found")

        try:
            product = await self.store.get_product(code)
            if product:
                product.manufacturer_id = manufacturer.id
                product.updated_at = datetime.now(timezone.utc)
            else:
                sample = (await self.db.execute(
                    select(Order.product_name, Order.option_name)
                    .where(Order.product_code == code)
                    .limit(1)
                )).first()

                hint = (product_name_hint or "").strip()
                product_name = hint or (sample.product_name if sample else None) or code
                self.db.add(Product(
                    product_code=code,
                    product_name=product_name,
                    option_name=(sample.option_name if sample else None) or None,
                    manufacturer_id=manufacturer.id,
                ))
            await self.db.flush()

            updated_orders = await self._backfill(manufacturer, _product_code_matches(code))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error linking product {code} to manufacturer {manufacturer_id}: {e}")
            raise TransactionFailureError(f"Could not link product {code}") from e

        logger.info(
            f"Linked product {code} to manufacturer {manufacturer.name} "
            f"(backfilled {updated_orders} orders)"
        )
        return ProductLinkResult(
            mode=LinkMode.LINK,
            product_code=code,
            manufacturer_id=manufacturer.id,
            updated_orders=updated_orders,
        )

    async def _unlink_product(self, code: str) -> ProductLinkResult:
        try:
            product = await self.store.get_product(code)
            if product:
                product.manufacturer_id = None
                product.updated_at = datetime.now(timezone.utc)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error unlinking product {code}: {e}")
            raise TransactionFailureError(f"Could not unlink product {code}") from e

        logger.info(f"Unlinked product {code}")
        return ProductLinkResult(mode=LinkMode.UNLINK, product_code=code)

    # ==================== OPTION LINK ====================

    async def link_option(
        self,
        product_code: str,
        option_name: str,
        manufacturer_id: int,
    ) -> OptionMapping:
        """Upsert an option mapping and backfill eligible orders with that product and option."""
        code = normalize_product_code(product_code)
        if not code:
            raise InvalidInputError("Product code is required")
        option = normalize_option_name(option_name)
        if not option:
            raise InvalidInputError("Option name is required")
        if manufacturer_id is None:
            raise InvalidInputError("Manufacturer is required")

        manufacturer = await self.store.get_manufacturer(manufacturer_id)
        if not manufacturer:
            raise NotFoundError(f"Manufacturer {manufacturer_id} not found")

        try:
            mapping = await self.store.get_option_mapping(code, option)
            if mapping:
                mapping.manufacturer_id = manufacturer.id
                mapping.updated_at = datetime.now(timezone.utc)
            else:
                mapping = OptionMapping(product_code=code, option_name=option, manufacturer_id=manufacturer.id)
                self.db.add(mapping)
            await self.db.flush()

            updated_orders = await self._backfill_option(manufacturer, code, option)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error linking option {code}/{option}: {e}")
            raise TransactionFailureError(f"Could not link option {option} of {code}") from e

        logger.info(
            f"Linked option {code}/{option} to manufacturer {manufacturer.name} "
            f"(backfilled {updated_orders} orders)"
        )
        await self.db.refresh(mapping)
        return mapping

    async def update_option_mapping(self, mapping_id: int, data: OptionMappingUpdate) -> OptionMapping:
        """Edit a mapping; the edited key is backfilled like a new link."""
        mapping = await self.store.get_option_mapping_by_id(mapping_id)
        if not mapping:
            raise NotFoundError(f"Option mapping {mapping_id} not found")

        changes = data.model_dump(exclude_unset=True)
        code = normalize_product_code(changes.get("product_code", mapping.product_code))
        option = normalize_option_name(changes.get("option_name", mapping.option_name))
        if "manufacturer_id" in changes and changes["manufacturer_id"] is None:
            raise InvalidInputError("Manufacturer is required")
        manufacturer_id = changes.get("manufacturer_id", mapping.manufacturer_id)
        if not code:
            raise InvalidInputError("Product code is required")
        if not option:
            raise InvalidInputError("Option name is required")

        manufacturer = await self.store.get_manufacturer(manufacturer_id)
        if not manufacturer:
            raise NotFoundError(f"Manufacturer {manufacturer_id} not found")

        try:
            mapping.product_code = code
            mapping.option_name = option
            mapping.manufacturer_id = manufacturer.id
            mapping.updated_at = datetime.now(timezone.utc)
            await self.db.flush()

            updated_orders = await self._backfill_option(manufacturer, code, option)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Option mapping {code}/{option} already exists: {e}")
            raise InvalidInputError(f"Option mapping already exists: {code} / {option}") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error updating option mapping {mapping_id}: {e}")
            raise TransactionFailureError(f"Could not update option mapping {mapping_id}") from e

        logger.info(f"Updated option mapping {mapping_id} (backfilled {updated_orders} orders)")
        await self.db.refresh(mapping)
        return mapping

    async def remove_option_mapping(self, mapping_id: int) -> None:
        """Delete a mapping. Orders already assigned keep their manufacturer."""
        mapping = await self.store.get_option_mapping_by_id(mapping_id)
        if not mapping:
            raise NotFoundError(f"Option mapping {mapping_id} not found")

        try:
            await self.db.delete(mapping)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error removing option mapping {mapping_id}: {e}")
            raise TransactionFailureError(f"Could not remove option mapping {mapping_id}") from e

        logger.info(f"Removed option mapping {mapping_id}")

    # ==================== BACKFILL ====================

    async def _backfill_option(self, manufacturer: Manufacturer, code: str, option: str) -> int:
        """
        Option backfill. Stored option names are raw, so candidates are
        narrowed in SQL by product code and compared after normalization.
        """
        candidates = await self.db.execute(
            select(Order.id, Order.option_name).where(
                *self._eligible(),
                _product_code_matches(code),
                Order.option_name.is_not(None),
            )
        )
        ids = [
            row.id for row in candidates
            if normalize_option_name(row.option_name).lower() == option.lower()
        ]
        if not ids:
            return 0
        return await self._backfill(manufacturer, Order.id.in_(ids))

    async def _backfill(self, manufacturer: Manufacturer, *criteria) -> int:
        """Assign manufacturer id and name to eligible orders matching criteria."""
        result = await self.db.execute(
            update(Order)
            .where(*self._eligible(), *criteria)
            .values(manufacturer_id=manufacturer.id, manufacturer_name=manufacturer.name)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    @staticmethod
    def _eligible():
        return (
            Order.manufacturer_id.is_(None),
            Order.excluded_reason.is_(None),
            order_is_included_sql(Order.fulfillment_type),
            Order.status != OrderStatus.COMPLETED.value,
        )
