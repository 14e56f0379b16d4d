"""Reference data access: manufacturers, product/option links, exclusion and courier rules."""
import json
import logging
from enum import Enum
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.core.exceptions import InvalidInputError, NotFoundError, TransactionFailureError
from orderdesk.models.manufacturer import Manufacturer, Product, OptionMapping
from orderdesk.models.order import Order
from orderdesk.models.settings import Setting, ExclusionPattern, CourierMapping
from orderdesk.schemas.courier import CourierMappingCreate, CourierMappingUpdate
from orderdesk.schemas.exclusion import ExclusionPatternCreate, ExclusionPatternUpdate
from orderdesk.schemas.manufacturer import ManufacturerCreate, ManufacturerUpdate


logger = logging.getLogger(__name__)

EXCLUSION_ENABLED_KEY = "exclusion_enabled"


class ExclusionToggle(str, Enum):
    """
    Global exclusion switch as stored in settings.

    UNSET covers a missing row and any value other than the JSON literals
    "true" / "false"; it keeps exclusion checking active.
    """
    ENABLED = "enabled"
    DISABLED = "disabled"
    UNSET = "unset"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "ExclusionToggle":
        if raw == "true":
            return cls.ENABLED
        if raw == "false":
            return cls.DISABLED
        return cls.UNSET

    @property
    def is_active(self) -> bool:
        return self is not ExclusionToggle.DISABLED


class RuleStore:
    """Reads and maintains administrator-owned reference data. No matching logic lives here."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== MANUFACTURERS / PRODUCTS ====================

    async def get_manufacturer(self, manufacturer_id: int) -> Optional[Manufacturer]:
        """Get manufacturer by ID."""
        result = await self.db.execute(
            select(Manufacturer).where(Manufacturer.id == manufacturer_id)
        )
        return result.scalar_one_or_none()

    async def list_manufacturers(self) -> List[Manufacturer]:
        result = await self.db.execute(select(Manufacturer).order_by(Manufacturer.name))
        return list(result.scalars().all())

    async def add_manufacturer(self, data: ManufacturerCreate) -> Manufacturer:
        name = data.name.strip()
        if not name:
            raise InvalidInputError("Manufacturer name is required")
        manufacturer = Manufacturer(**data.model_dump(exclude={"name"}), name=name, order_count=0)
        self.db.add(manufacturer)
        await self._commit("add manufacturer", duplicate_message=f"Manufacturer already exists: {data.name}")
        await self.db.refresh(manufacturer)
        logger.info(f"Added manufacturer {manufacturer.name}")
        return manufacturer

    async def update_manufacturer(self, manufacturer_id: int, data: ManufacturerUpdate) -> Manufacturer:
        """Edit a manufacturer. A rename is copied onto its orders' manufacturer_name."""
        manufacturer = await self.get_manufacturer(manufacturer_id)
        if not manufacturer:
            raise NotFoundError(f"Manufacturer {manufacturer_id} not found")

        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            if changes["name"] is None or not changes["name"].strip():
                raise InvalidInputError("Manufacturer name is required")
            changes["name"] = changes["name"].strip()

        for key, value in changes.items():
            setattr(manufacturer, key, value)

        if "name" in changes:
            try:
                await self.db.execute(
                    update(Order)
                    .where(Order.manufacturer_id == manufacturer_id)
                    .values(manufacturer_name=changes["name"])
                    .execution_options(synchronize_session=False)
                )
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Database error renaming manufacturer {manufacturer_id}: {e}")
                raise TransactionFailureError(f"Could not update manufacturer {manufacturer_id}") from e

        await self._commit("update manufacturer", duplicate_message=f"Manufacturer already exists: {data.name}")
        await self.db.refresh(manufacturer)
        return manufacturer

    async def remove_manufacturer(self, manufacturer_id: int) -> None:
        """Delete a manufacturer without orders; option mappings go with it, products become unmapped."""
        manufacturer = await self.get_manufacturer(manufacturer_id)
        if not manufacturer:
            raise NotFoundError(f"Manufacturer {manufacturer_id} not found")

        order_count = (await self.db.execute(
            select(func.count(Order.id)).where(Order.manufacturer_id == manufacturer_id)
        )).scalar_one()
        if order_count:
            raise InvalidInputError(f"Manufacturer {manufacturer_id} still has {order_count} orders")

        await self.db.delete(manufacturer)
        await self._commit("remove manufacturer")
        logger.info(f"Removed manufacturer {manufacturer_id}")

    async def get_product(self, product_code: str) -> Optional[Product]:
        """Get product by exact code."""
        result = await self.db.execute(
            select(Product).where(Product.product_code == product_code)
        )
        return result.scalar_one_or_none()

    async def get_option_mapping(self, product_code: str, option_name: str) -> Optional[OptionMapping]:
        """Get option mapping by exact (code, normalized option) pair."""
        result = await self.db.execute(
            select(OptionMapping).where(
                OptionMapping.product_code == product_code,
                OptionMapping.option_name == option_name,
            )
        )
        return result.scalar_one_or_none()

    async def get_option_mapping_by_id(self, mapping_id: int) -> Optional[OptionMapping]:
        result = await self.db.execute(
            select(OptionMapping).where(OptionMapping.id == mapping_id)
        )
        return result.scalar_one_or_none()

    async def list_option_mappings(self, product_code: Optional[str] = None) -> List[OptionMapping]:
        """Option mappings, newest first."""
        stmt = select(OptionMapping).order_by(OptionMapping.created_at.desc(), OptionMapping.id.desc())
        if product_code:
            stmt = stmt.where(OptionMapping.product_code == product_code)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # ==================== EXCLUSION SETTINGS ====================

    async def get_exclusion_toggle(self) -> ExclusionToggle:
        result = await self.db.execute(
            select(Setting.value).where(Setting.key == EXCLUSION_ENABLED_KEY)
        )
        return ExclusionToggle.parse(result.scalar_one_or_none())

    async def set_exclusion_enabled(self, enabled: bool) -> ExclusionToggle:
        """Upsert the global exclusion switch."""
        value = json.dumps(bool(enabled))
        setting = await self.db.get(Setting, EXCLUSION_ENABLED_KEY)
        if setting:
            setting.value = value
        else:
            self.db.add(Setting(
                key=EXCLUSION_ENABLED_KEY,
                value=value,
                description="Global switch for exclusion pattern checks",
            ))
        await self._commit("set exclusion toggle")
        logger.info(f"Exclusion checking {'enabled' if enabled else 'disabled'}")
        return ExclusionToggle.parse(value)

    async def list_exclusion_patterns(self, enabled_only: bool = False) -> List[ExclusionPattern]:
        """Patterns in precedence order (creation time, then id)."""
        stmt = select(ExclusionPattern).order_by(ExclusionPattern.created_at, ExclusionPattern.id)
        if enabled_only:
            stmt = stmt.where(ExclusionPattern.enabled == True)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def add_exclusion_pattern(self, data: ExclusionPatternCreate) -> ExclusionPattern:
        pattern = ExclusionPattern(
            pattern=data.pattern,
            description=data.description,
            enabled=data.enabled,
        )
        self.db.add(pattern)
        await self._commit("add exclusion pattern", duplicate_message=f"Pattern already exists: {data.pattern}")
        await self.db.refresh(pattern)
        return pattern

    async def update_exclusion_pattern(self, pattern_id: int, data: ExclusionPatternUpdate) -> ExclusionPattern:
        """Edit a pattern in place. created_at is never touched so precedence is stable."""
        pattern = await self.db.get(ExclusionPattern, pattern_id)
        if not pattern:
            raise NotFoundError(f"Exclusion pattern {pattern_id} not found")

        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(pattern, key, value)

        await self._commit("update exclusion pattern", duplicate_message=f"Pattern already exists: {data.pattern}")
        await self.db.refresh(pattern)
        return pattern

    async def remove_exclusion_pattern(self, pattern_id: int) -> None:
        pattern = await self.db.get(ExclusionPattern, pattern_id)
        if not pattern:
            raise NotFoundError(f"Exclusion pattern {pattern_id} not found")
        await self.db.delete(pattern)
        await self._commit("remove exclusion pattern")

    # ==================== COURIERS ====================

    async def list_courier_mappings(self, enabled_only: bool = False) -> List[CourierMapping]:
        stmt = select(CourierMapping).order_by(CourierMapping.name)
        if enabled_only:
            stmt = stmt.where(CourierMapping.enabled == True)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def add_courier_mapping(self, data: CourierMappingCreate) -> CourierMapping:
        mapping = CourierMapping(
            name=data.name.strip(),
            code=data.code.strip(),
            aliases=data.aliases,
            enabled=data.enabled,
        )
        self.db.add(mapping)
        await self._commit(
            "add courier mapping",
            duplicate_message=f"Courier name or code already exists: {data.name} / {data.code}",
        )
        await self.db.refresh(mapping)
        return mapping

    async def update_courier_mapping(self, mapping_id: int, data: CourierMappingUpdate) -> CourierMapping:
        mapping = await self.db.get(CourierMapping, mapping_id)
        if not mapping:
            raise NotFoundError(f"Courier mapping {mapping_id} not found")

        for key, value in data.model_dump(exclude_unset=True).items():
            if isinstance(value, str):
                value = value.strip()
            setattr(mapping, key, value)

        await self._commit("update courier mapping", duplicate_message="Courier name or code already exists")
        await self.db.refresh(mapping)
        return mapping

    async def remove_courier_mapping(self, mapping_id: int) -> None:
        mapping = await self.db.get(CourierMapping, mapping_id)
        if not mapping:
            raise NotFoundError(f"Courier mapping {mapping_id} not found")
        await self.db.delete(mapping)
        await self._commit("remove courier mapping")

    # ==================== HELPERS ====================

    async def _commit(self, action: str, duplicate_message: Optional[str] = None) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Integrity error during {action}: {e}")
            raise InvalidInputError(duplicate_message or f"Could not {action}: conflicting data") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error during {action}: {e}")
            raise TransactionFailureError(f"Could not {action}") from e
