import pytest
from sqlalchemy import select

from orderdesk.core.exceptions import InvalidInputError, NotFoundError, TransactionFailureError
from orderdesk.models import OptionMapping, Product
from orderdesk.schemas.resolution import LinkMode, OptionMappingUpdate
from orderdesk.services.resolution_service import ResolutionService, normalize_option_name
from tests.helpers import (
    add_manufacturer,
    add_order,
    add_pattern,
    add_product,
    fail_updates,
    order_state,
)


@pytest.mark.parametrize("raw, expected", [
    ("Red  / Large [2]", "Red / Large"),
    ("  Blue  ", "Blue"),
    (" Blue Large ", "Blue Large"),
    ("Size [10] Pack", "Size [10] Pack"),
    ("[3]", ""),
    ("...", ""),
    (". .", ""),
    ("없음", ""),
    ("", ""),
    (None, ""),
])
def test_normalize_option_name(raw, expected):
    assert normalize_option_name(raw) == expected


# ==================== resolve ====================

async def test_option_mapping_wins_over_product(session):
    acme = await add_manufacturer(session, "Acme")
    beta = await add_manufacturer(session, "Beta")
    await add_product(session, "P1", manufacturer_id=acme.id)
    await ResolutionService(session).link_option("P1", "Red", beta.id)
    service = ResolutionService(session)

    assert await service.resolve("P1", "Red") == beta.id
    assert await service.resolve("P1", " Red  [2]") == beta.id
    assert await service.resolve("P1", "Blue") == acme.id
    assert await service.resolve("P1", None) == acme.id


async def test_unresolved_cases(session):
    await add_product(session, "P2")
    service = ResolutionService(session)

    assert await service.resolve("P2", "Red") is None
    assert await service.resolve("UNKNOWN", "Red") is None
    assert await service.resolve("  ", "Red") is None
    assert await service.resolve(None, None) is None


async def test_resolve_many_matches_resolve(session):
    acme = await add_manufacturer(session, "Acme")
    beta = await add_manufacturer(session, "Beta")
    await add_product(session, "P1", manufacturer_id=acme.id)
    await ResolutionService(session).link_option("P1", "Red", beta.id)
    service = ResolutionService(session)

    pairs = [("P1", "Red [1]"), ("P1", "Blue"), (" P1 ", None), ("P9", "Red"), ("", "Red")]
    batch = await service.resolve_many(pairs)

    assert batch[("P1", "Red")] == beta.id
    assert batch[("P1", "Blue")] == acme.id
    assert batch[("P1", "")] == acme.id
    assert batch[("P9", "Red")] is None
    assert batch[("", "Red")] is None
    for code, option in pairs:
        key = (code.strip(), normalize_option_name(option))
        assert batch[key] == await service.resolve(code, option)


# ==================== link_product_to_manufacturer ====================

async def test_link_backfills_only_eligible_orders(session):
    acme = await add_manufacturer(session, "Acme")
    other = await add_manufacturer(session, "Other")
    await add_pattern(session, "위탁", description="위탁배송")

    await add_order(session, "O-1", product_code=" p1 ")
    await add_order(session, "O-2", product_code="P1", status="completed")
    await add_order(session, "O-3", product_code="P1", fulfillment_type="업체위탁")
    await add_order(session, "O-4", product_code="P1", manufacturer_id=other.id, manufacturer_name=other.name)
    await add_order(session, "O-5", product_code="P2")
    await add_order(session, "O-6", product_code="P1", excluded_reason="manual hold")
    await add_order(session, "O-7", product_code="P1", status="processing")

    result = await ResolutionService(session).link_product_to_manufacturer("P1", acme.id)

    assert result.mode == LinkMode.LINK
    assert result.product_code == "P1"
    assert result.manufacturer_id == acme.id
    assert result.updated_orders == 2
    assert tuple((await order_state(session, "O-1"))[:2]) == (acme.id, "Acme")
    assert tuple((await order_state(session, "O-7"))[:2]) == (acme.id, "Acme")
    assert (await order_state(session, "O-2")).manufacturer_id is None
    assert (await order_state(session, "O-3")).manufacturer_id is None
    assert (await order_state(session, "O-4")).manufacturer_id == other.id
    assert (await order_state(session, "O-5")).manufacturer_id is None
    assert (await order_state(session, "O-6")).manufacturer_id is None


async def test_link_is_idempotent(session):
    acme = await add_manufacturer(session, "Acme")
    await add_order(session, "O-1", product_code="P1")
    service = ResolutionService(session)

    first = await service.link_product_to_manufacturer("P1", acme.id)
    second = await service.link_product_to_manufacturer("P1", acme.id)

    assert first.updated_orders == 1
    assert second.updated_orders == 0
    assert (await order_state(session, "O-1")).manufacturer_id == acme.id


async def test_link_creates_product_from_sample_order(session):
    acme = await add_manufacturer(session, "Acme")
    await add_order(session, "O-1", product_code="P1", product_name="Cotton towel", option_name="White")

    await ResolutionService(session).link_product_to_manufacturer("P1", acme.id)

    product = (await session.execute(select(Product).where(Product.product_code == "P1"))).scalar_one()
    assert product.product_name == "Cotton towel"
    assert product.option_name == "White"
    assert product.manufacturer_id == acme.id


async def test_link_product_name_hint_and_code_fallback(session):
    acme = await add_manufacturer(session, "Acme")
    await add_order(session, "O-1", product_code="P1", product_name="Cotton towel")
    service = ResolutionService(session)

    await service.link_product_to_manufacturer("P1", acme.id, product_name_hint="Bath towel")
    await service.link_product_to_manufacturer("P9", acme.id)

    names = dict((await session.execute(select(Product.product_code, Product.product_name))).all())
    assert names == {"P1": "Bath towel", "P9": "P9"}


async def test_relink_moves_product_but_not_assigned_orders(session):
    acme = await add_manufacturer(session, "Acme")
    beta = await add_manufacturer(session, "Beta")
    await add_order(session, "O-1", product_code="P1")
    service = ResolutionService(session)

    await service.link_product_to_manufacturer("P1", acme.id)
    result = await service.link_product_to_manufacturer("P1", beta.id)

    assert result.updated_orders == 0
    assert await service.resolve("P1", None) == beta.id
    assert (await order_state(session, "O-1")).manufacturer_id == acme.id


async def test_unlink_clears_product_only(session):
    acme = await add_manufacturer(session, "Acme")
    await add_order(session, "O-1", product_code="P1")
    service = ResolutionService(session)
    await service.link_product_to_manufacturer("P1", acme.id)

    result = await service.link_product_to_manufacturer("P1", None)

    assert result.mode == LinkMode.UNLINK
    assert result.updated_orders == 0
    assert await service.resolve("P1", None) is None
    assert (await order_state(session, "O-1")).manufacturer_id == acme.id


async def test_link_rejects_blank_code(session):
    acme = await add_manufacturer(session, "Acme")
    with pytest.raises(InvalidInputError):
        await ResolutionService(session).link_product_to_manufacturer("   ", acme.id)


async def test_link_unknown_manufacturer(session):
    await add_order(session, "O-1", product_code="P1")
    with pytest.raises(NotFoundError):
        await ResolutionService(session).link_product_to_manufacturer("P1", 404)
    assert (await order_state(session, "O-1")).manufacturer_id is None


async def test_failed_backfill_rolls_back_product(session, monkeypatch):
    acme = await add_manufacturer(session, "Acme")
    await add_order(session, "O-1", product_code="P1")
    fail_updates(session, monkeypatch)

    with pytest.raises(TransactionFailureError):
        await ResolutionService(session).link_product_to_manufacturer("P1", acme.id)

    assert (await session.execute(select(Product.id))).first() is None
    assert (await order_state(session, "O-1")).manufacturer_id is None


# ==================== option mappings ====================

async def test_link_option_backfills_matching_option(session):
    acme = await add_manufacturer(session, "Acme")
    await add_order(session, "O-1", product_code="P1", option_name="red [2]")
    await add_order(session, "O-2", product_code="P1", option_name="Blue")
    await add_order(session, "O-3", product_code="P1", option_name=None)
    await add_order(session, "O-4", product_code="P1", option_name="Red", status="completed")

    mapping = await ResolutionService(session).link_option("P1", " Red ", acme.id)

    assert mapping.option_name == "Red"
    assert mapping.manufacturer_id == acme.id
    assert (await order_state(session, "O-1")).manufacturer_name == "Acme"
    assert (await order_state(session, "O-2")).manufacturer_id is None
    assert (await order_state(session, "O-3")).manufacturer_id is None
    assert (await order_state(session, "O-4")).manufacturer_id is None


async def test_link_option_upserts(session):
    acme = await add_manufacturer(session, "Acme")
    beta = await add_manufacturer(session, "Beta")
    service = ResolutionService(session)

    first = await service.link_option("P1", "Red", acme.id)
    second = await service.link_option("P1", "Red [3]", beta.id)

    assert first.id == second.id
    rows = (await session.execute(select(OptionMapping.manufacturer_id))).scalars().all()
    assert rows == [beta.id]


async def test_link_option_requires_option(session):
    acme = await add_manufacturer(session, "Acme")
    with pytest.raises(InvalidInputError):
        await ResolutionService(session).link_option("P1", "없음", acme.id)


async def test_update_option_mapping_conflict(session):
    acme = await add_manufacturer(session, "Acme")
    service = ResolutionService(session)
    await service.link_option("P1", "Red", acme.id)
    blue = await service.link_option("P1", "Blue", acme.id)

    with pytest.raises(InvalidInputError):
        await service.update_option_mapping(blue.id, OptionMappingUpdate(option_name="Red"))


async def test_update_option_mapping_backfills_new_key(session):
    acme = await add_manufacturer(session, "Acme")
    await add_order(session, "O-1", product_code="P1", option_name="Green")
    service = ResolutionService(session)
    mapping = await service.link_option("P1", "Red", acme.id)

    updated = await service.update_option_mapping(mapping.id, OptionMappingUpdate(option_name="Green"))

    assert updated.option_name == "Green"
    assert (await order_state(session, "O-1")).manufacturer_id == acme.id


async def test_remove_option_mapping_keeps_orders(session):
    acme = await add_manufacturer(session, "Acme")
    await add_order(session, "O-1", product_code="P1", option_name="Red")
    service = ResolutionService(session)
    mapping = await service.link_option("P1", "Red", acme.id)

    await service.remove_option_mapping(mapping.id)

    assert await service.resolve("P1", "Red") is None
    assert (await order_state(session, "O-1")).manufacturer_id == acme.id
    with pytest.raises(NotFoundError):
        await service.remove_option_mapping(mapping.id)


async def test_failed_option_backfill_rolls_back_mapping(session, monkeypatch):
    acme = await add_manufacturer(session, "Acme")
    await add_order(session, "O-1", product_code="P1", option_name="Red")
    fail_updates(session, monkeypatch)

    with pytest.raises(TransactionFailureError):
        await ResolutionService(session).link_option("P1", "Red", acme.id)

    assert (await session.execute(select(OptionMapping.id))).first() is None
    assert (await order_state(session, "O-1")).manufacturer_id is None


async def test_update_option_mapping_rejects_null_manufacturer(session):
    acme = await add_manufacturer(session, "Acme")
    service = ResolutionService(session)
    mapping = await service.link_option("P1", "Red", acme.id)

    with pytest.raises(InvalidInputError):
        await service.update_option_mapping(mapping.id, OptionMappingUpdate(manufacturer_id=None))

    assert await service.resolve("P1", "Red") == acme.id
