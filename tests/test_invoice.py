import pytest

from orderdesk.config import settings
from orderdesk.core.exceptions import InvalidInputError, NotFoundError
from orderdesk.models import CourierMapping
from orderdesk.schemas.invoice import InvoiceRow, RowOutcome
from orderdesk.services.invoice_service import (
    InvoiceReconciliationService,
    build_courier_lookup,
    classify_invoice_row,
    summarize,
)
from tests.helpers import add_courier, add_manufacturer, add_order, fail_updates, order_state


def test_courier_lookup_uses_enabled_names_and_aliases():
    lookup = build_courier_lookup([
        CourierMapping(name="CJ대한통운", code="04", aliases=["CJ택배", " 대한통운 "], enabled=True),
        CourierMapping(name="Hanjin", code="05", aliases=None, enabled=True),
        CourierMapping(name="Retired", code="99", aliases=["old"], enabled=False),
    ])

    assert lookup == {
        "cj대한통운": "04",
        "cj택배": "04",
        "대한통운": "04",
        "hanjin": "05",
    }


def test_classify_row_outcomes():
    lookup = {"cj택배": "04"}
    order_ids = {"A-1": 1}

    ok = classify_invoice_row(InvoiceRow(order_number=" A-1 ", courier_name="CJ택배", tracking_number=" 123 "), lookup, order_ids)
    assert (ok.status, ok.courier_code, ok.tracking_number) == (RowOutcome.SUCCESS, "04", "123")

    bad_courier = classify_invoice_row(InvoiceRow(order_number="A-1", courier_name="Unknown"), lookup, order_ids)
    assert bad_courier.status == RowOutcome.COURIER_ERROR
    assert bad_courier.original_courier == "Unknown"

    missing = classify_invoice_row(InvoiceRow(order_number="Z-9", courier_name="CJ택배"), lookup, order_ids)
    assert missing.status == RowOutcome.ORDER_NOT_FOUND
    assert missing.error_message


def test_summary_lists_every_outcome():
    assert summarize([]) == {"success": 0, "order_not_found": 0, "courier_error": 0}


@pytest.fixture
async def seeded(session):
    manufacturer = await add_manufacturer(session, "Acme")
    await add_courier(session, "CJ대한통운", "04", aliases=["CJ택배"])
    await add_order(session, "A-1", manufacturer_id=manufacturer.id, manufacturer_name="Acme")
    await add_order(session, "A-2", manufacturer_id=manufacturer.id, manufacturer_name="Acme")
    return manufacturer


def _three_rows():
    return [
        InvoiceRow(order_number="A-1", courier_name="cj택배", tracking_number=" 123456 "),
        InvoiceRow(order_number="A-2", courier_name="UnknownCo", tracking_number="999"),
        InvoiceRow(order_number="Z-404", courier_name="CJ대한통운", tracking_number="555"),
    ]


async def test_reconcile_applies_only_success_rows(session, seeded):
    result = await InvoiceReconciliationService(session).reconcile(seeded.id, _three_rows())

    assert result.success is True
    assert result.applied_count == 1
    assert result.manufacturer_name == "Acme"
    assert [r.status for r in result.results] == [
        RowOutcome.SUCCESS,
        RowOutcome.COURIER_ERROR,
        RowOutcome.ORDER_NOT_FOUND,
    ]
    assert result.summary == {"success": 1, "order_not_found": 1, "courier_error": 1}

    a1 = await order_state(session, "A-1")
    assert (a1.courier, a1.tracking_number) == ("04", "123456")
    a2 = await order_state(session, "A-2")
    assert (a2.courier, a2.tracking_number) == (None, None)


async def test_reconcile_failure_applies_nothing(session, seeded, monkeypatch):
    fail_updates(session, monkeypatch)

    result = await InvoiceReconciliationService(session).reconcile(seeded.id, _three_rows())

    assert result.success is False
    assert result.applied_count == 0
    assert result.error_message
    assert len(result.results) == 3
    assert result.summary["success"] == 1

    monkeypatch.undo()
    a1 = await order_state(session, "A-1")
    assert (a1.courier, a1.tracking_number) == (None, None)


async def test_reconcile_is_idempotent(session, seeded):
    service = InvoiceReconciliationService(session)
    rows = [InvoiceRow(order_number="A-1", courier_name="CJ대한통운", tracking_number="777")]

    first = await service.reconcile(seeded.id, rows)
    second = await service.reconcile(seeded.id, rows)

    assert first.applied_count == second.applied_count == 1
    a1 = await order_state(session, "A-1")
    assert (a1.courier, a1.tracking_number) == ("04", "777")


async def test_disabled_courier_is_a_courier_error(session, seeded):
    await add_courier(session, "Retired Express", "99", enabled=False)

    result = await InvoiceReconciliationService(session).reconcile(
        seeded.id,
        [InvoiceRow(order_number="A-1", courier_name="Retired Express", tracking_number="1")],
    )

    assert result.results[0].status == RowOutcome.COURIER_ERROR
    assert result.applied_count == 0


async def test_blank_order_number_is_not_found(session, seeded):
    result = await InvoiceReconciliationService(session).reconcile(
        seeded.id,
        [InvoiceRow(order_number="  ", courier_name="CJ대한통운", tracking_number="1")],
    )

    assert result.results[0].status == RowOutcome.ORDER_NOT_FOUND


async def test_empty_invoice(session, seeded):
    result = await InvoiceReconciliationService(session).reconcile(seeded.id, [], manufacturer_name="Acme Co.")

    assert result.success is True
    assert result.applied_count == 0
    assert result.results == []
    assert result.manufacturer_name == "Acme Co."
    assert result.summary == {"success": 0, "order_not_found": 0, "courier_error": 0}


async def test_unknown_manufacturer(session, seeded):
    with pytest.raises(NotFoundError):
        await InvoiceReconciliationService(session).reconcile(404, _three_rows())


async def test_row_limit(session, seeded, monkeypatch):
    monkeypatch.setattr(settings, "INVOICE_MAX_ROWS", 2)

    with pytest.raises(InvalidInputError):
        await InvoiceReconciliationService(session).reconcile(seeded.id, _three_rows())


async def test_repeated_order_number_counts_one_order(session, seeded):
    result = await InvoiceReconciliationService(session).reconcile(seeded.id, [
        InvoiceRow(order_number="A-1", courier_name="CJ대한통운", tracking_number="111"),
        InvoiceRow(order_number="A-1", courier_name="CJ택배", tracking_number="222"),
    ])

    assert [r.status for r in result.results] == [RowOutcome.SUCCESS, RowOutcome.SUCCESS]
    assert result.applied_count == 1
    a1 = await order_state(session, "A-1")
    assert (a1.courier, a1.tracking_number) == ("04", "222")
