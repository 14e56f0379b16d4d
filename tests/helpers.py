"""Seed and inspection helpers shared by the test modules."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql.dml import Update

from orderdesk.models import CourierMapping, ExclusionPattern, Manufacturer, Order, Product, Setting
from orderdesk.services.rule_store import EXCLUSION_ENABLED_KEY


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def add_manufacturer(session, name: str, email: Optional[str] = "orders@example.com") -> Manufacturer:
    manufacturer = Manufacturer(name=name, email=email)
    session.add(manufacturer)
    await session.commit()
    return manufacturer


async def add_product(session, code: str, name: str = "Sample product", manufacturer_id=None) -> Product:
    product = Product(product_code=code, product_name=name, manufacturer_id=manufacturer_id)
    session.add(product)
    await session.commit()
    return product


async def add_order(session, order_number: str, **fields) -> Order:
    fields.setdefault("status", "pending")
    fields.setdefault("quantity", 1)
    fields.setdefault("payment_amount", Decimal("10000"))
    order = Order(order_number=order_number, **fields)
    session.add(order)
    await session.commit()
    return order


async def add_pattern(session, pattern: str, description=None, enabled=True, minutes=0) -> ExclusionPattern:
    """Patterns get explicit creation times so precedence does not depend on clock resolution."""
    row = ExclusionPattern(
        pattern=pattern,
        description=description,
        enabled=enabled,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )
    session.add(row)
    await session.commit()
    return row


async def add_courier(session, name: str, code: str, aliases=(), enabled=True) -> CourierMapping:
    courier = CourierMapping(name=name, code=code, aliases=list(aliases), enabled=enabled)
    session.add(courier)
    await session.commit()
    return courier


async def set_toggle_raw(session, value: str) -> None:
    session.add(Setting(key=EXCLUSION_ENABLED_KEY, value=value))
    await session.commit()


async def order_state(session, order_number: str):
    """Current persisted columns of an order, bypassing the identity map."""
    result = await session.execute(
        select(
            Order.manufacturer_id,
            Order.manufacturer_name,
            Order.courier,
            Order.tracking_number,
        ).where(Order.order_number == order_number)
    )
    return result.one()


def fail_updates(session, monkeypatch) -> None:
    """Make every UPDATE executed through this session fail like a lost connection."""
    original = session.execute

    async def execute(statement, *args, **kwargs):
        if isinstance(statement, Update):
            raise OperationalError(str(statement), {}, Exception("database is locked"))
        return await original(statement, *args, **kwargs)

    monkeypatch.setattr(session, "execute", execute)
