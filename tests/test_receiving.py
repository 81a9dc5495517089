from datetime import date, datetime
from decimal import Decimal

import pytest

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.modules.purchases.schemas import PurchaseOrderCreate
from app.modules.purchases.service import PurchaseOrderService
from app.modules.receiving.schemas import ReceiptOpen, ReceiptLineInput
from app.modules.receiving.service import ReceivingService
from app.shared.database.models import InventoryAdjustment, Product, PurchaseOrder, Receipt
from app.shared.services.stock_ledger import StockLedger

from .conftest import ACTIVE_SUPPLIER

pytestmark = pytest.mark.anyio


@pytest.fixture
async def order_id(catalog):
    response = await PurchaseOrderService(catalog).create_order(PurchaseOrderCreate(
        supplier_id=ACTIVE_SUPPLIER,
        lines=[
            {"product_id": "P001", "quantity": 10, "unit_cost": "5.00"},
            {"product_id": "P002", "quantity": 3, "unit_cost": "12.50"},
        ]
    ))
    return response.order.id


def product(db, product_id):
    db.expire_all()
    return db.get(Product, product_id)


async def test_open_without_lines_proposes_pending_quantities(catalog, order_id):
    response = await ReceivingService(catalog).open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)

    receipt = response.receipt
    assert receipt.state == "ABI"
    assert receipt.employee_id == 2
    assert [(l.product_id, l.expected_quantity, l.quantity_received) for l in receipt.lines] == [
        ("P001", 10, 10),
        ("P002", 3, 3),
    ]
    assert product(catalog, "P001").current_balance == 0


async def test_open_missing_order(catalog):
    with pytest.raises(NotFoundError):
        await ReceivingService(catalog).open_receipt(ReceiptOpen(purchase_order_id="OC-2000-000009"), employee_id=2)


async def test_only_one_open_receipt_per_order(catalog, order_id):
    service = ReceivingService(catalog)
    await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)

    with pytest.raises(ConflictError):
        await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)


async def test_open_rejected_for_canceled_order(catalog, order_id):
    await PurchaseOrderService(catalog).cancel_order(order_id)

    with pytest.raises(ConflictError):
        await ReceivingService(catalog).open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)


@pytest.mark.parametrize("lines, error", [
    ([ReceiptLineInput(product_id="P004", quantity_received=1)], NotFoundError),
    ([ReceiptLineInput(product_id="P001", quantity_received=11)], ValidationError),
    ([ReceiptLineInput(product_id="P001", quantity_received=-1)], ValidationError),
])
async def test_open_with_invalid_lines(catalog, order_id, lines, error):
    with pytest.raises(error):
        await ReceivingService(catalog).open_receipt(
            ReceiptOpen(purchase_order_id=order_id, lines=lines), employee_id=2
        )


async def test_open_with_explicit_empty_lines(catalog, order_id):
    with pytest.raises(ValidationError) as exc:
        await ReceivingService(catalog).open_receipt(ReceiptOpen(purchase_order_id=order_id, lines=[]), employee_id=2)

    assert "al menos una línea" in exc.value.detail
    assert catalog.query(Receipt).count() == 0


async def test_adjust_lines_overwrites_quantities(catalog, order_id):
    service = ReceivingService(catalog)
    opened = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)

    response = await service.adjust_lines(opened.receipt.id, [
        ReceiptLineInput(product_id="P001", quantity_received=7),
        ReceiptLineInput(product_id="P002", quantity_received=0),
    ])

    assert {l.product_id: l.quantity_received for l in response.receipt.lines} == {"P001": 7, "P002": 0}


async def test_adjust_lines_cannot_exceed_pending(catalog, order_id):
    service = ReceivingService(catalog)
    opened = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)

    with pytest.raises(ValidationError):
        await service.adjust_lines(opened.receipt.id, [ReceiptLineInput(product_id="P002", quantity_received=4)])


async def test_approve_full_receipt_closes_order(catalog, order_id):
    service = ReceivingService(catalog)
    opened = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)

    response = await service.approve_receipt(opened.receipt.id, employee_id=2)

    assert response.receipt.state == "APR"
    assert response.receipt.approved_by == 2
    assert response.order_state == "CER"

    p001 = product(catalog, "P001")
    assert p001.inflow == 10
    assert p001.current_balance == 10
    assert p001.average_cost == Decimal("5.000")
    assert StockLedger.check_balance_identity(p001)

    adjustment = catalog.get(InventoryAdjustment, response.adjustment_id)
    assert adjustment.direction == "E"
    assert adjustment.origin == "REC"
    assert adjustment.reference == order_id
    assert adjustment.line_count == 2
    assert {(l.product_id, l.quantity) for l in adjustment.lines} == {("P001", 10), ("P002", 3)}
    assert response.receipt.adjustment_id == adjustment.id


async def test_partial_receipts_move_order_to_partial_then_closed(catalog, order_id):
    service = ReceivingService(catalog)
    first = await service.open_receipt(
        ReceiptOpen(purchase_order_id=order_id, lines=[ReceiptLineInput(product_id="P001", quantity_received=4)]),
        employee_id=2
    )
    approved = await service.approve_receipt(first.receipt.id, employee_id=2)
    assert approved.order_state == "PAR"

    second = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)
    assert [(l.product_id, l.expected_quantity) for l in second.receipt.lines] == [("P001", 6), ("P002", 3)]

    closed = await service.approve_receipt(second.receipt.id, employee_id=2)
    assert closed.order_state == "CER"

    order = catalog.get(PurchaseOrder, order_id)
    assert [(l.quantity, l.quantity_received) for l in order.lines] == [(10, 10), (3, 3)]
    assert product(catalog, "P001").current_balance == 10


async def test_approve_twice_commits_stock_once(catalog, order_id):
    service = ReceivingService(catalog)
    opened = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)
    await service.approve_receipt(opened.receipt.id, employee_id=2)

    with pytest.raises(ConflictError):
        await service.approve_receipt(opened.receipt.id, employee_id=2)

    assert product(catalog, "P002").current_balance == 3
    assert catalog.query(InventoryAdjustment).count() == 1


async def test_approve_recomputes_weighted_average_cost(catalog):
    created = await PurchaseOrderService(catalog).create_order(PurchaseOrderCreate(
        supplier_id=ACTIVE_SUPPLIER,
        lines=[{"product_id": "P004", "quantity": 10, "unit_cost": "1.20"}]
    ))
    service = ReceivingService(catalog)
    opened = await service.open_receipt(ReceiptOpen(purchase_order_id=created.order.id), employee_id=2)

    await service.approve_receipt(opened.receipt.id, employee_id=2)

    p004 = product(catalog, "P004")
    assert p004.current_balance == 40
    assert p004.average_cost == Decimal("0.900")
    assert StockLedger.check_balance_identity(p004)


async def test_approve_without_quantities_is_rejected(catalog, order_id):
    service = ReceivingService(catalog)
    opened = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)
    await service.adjust_lines(opened.receipt.id, [
        ReceiptLineInput(product_id="P001", quantity_received=0),
        ReceiptLineInput(product_id="P002", quantity_received=0),
    ])

    with pytest.raises(ValidationError):
        await service.approve_receipt(opened.receipt.id, employee_id=2)

    assert (await service.get_receipt(opened.receipt.id)).receipt.state == "ABI"


async def test_cancel_draft_receipt_has_no_stock_effect(catalog, order_id):
    service = ReceivingService(catalog)
    opened = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)

    response = await service.cancel_receipt(opened.receipt.id, "Mercadería dañada")

    assert response.receipt.state == "ANU"
    assert response.receipt.cancel_reason == "Mercadería dañada"
    assert product(catalog, "P001").current_balance == 0
    assert catalog.get(PurchaseOrder, order_id).state == "PEN"

    with pytest.raises(ConflictError):
        await service.approve_receipt(opened.receipt.id, employee_id=2)


async def test_approved_receipt_is_terminal(catalog, order_id):
    service = ReceivingService(catalog)
    opened = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)
    await service.approve_receipt(opened.receipt.id, employee_id=2)

    with pytest.raises(ConflictError):
        await service.cancel_receipt(opened.receipt.id)
    with pytest.raises(ConflictError):
        await service.adjust_lines(opened.receipt.id, [ReceiptLineInput(product_id="P001", quantity_received=1)])


async def test_closed_order_accepts_no_more_receipts(catalog, order_id):
    service = ReceivingService(catalog)
    opened = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)
    await service.approve_receipt(opened.receipt.id, employee_id=2)

    with pytest.raises(ConflictError):
        await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)


async def test_list_receipts_by_order_and_state(catalog, order_id):
    service = ReceivingService(catalog)
    first = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)
    await service.cancel_receipt(first.receipt.id)
    await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)

    all_receipts = await service.list_receipts(order_id=order_id)
    canceled = await service.list_receipts(state="ANU")

    assert all_receipts.total_receipts == 2
    assert [r.id for r in canceled.receipts] == [first.receipt.id]

    with pytest.raises(ValidationError):
        await service.list_receipts(state="ZZZ")
    with pytest.raises(NotFoundError):
        await service.get_receipt(999)


async def test_search_receipts_by_order_and_date_range(catalog, order_id):
    service = ReceivingService(catalog)
    first = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)
    await service.cancel_receipt(first.receipt.id)
    second = await service.open_receipt(ReceiptOpen(purchase_order_id=order_id), employee_id=2)

    catalog.get(Receipt, first.receipt.id).created_at = datetime(2025, 3, 10, 9, 30)
    catalog.get(Receipt, second.receipt.id).created_at = datetime(2025, 3, 12, 23, 59)
    catalog.commit()

    by_order = await service.search_receipts(order_id=order_id)
    same_day = await service.search_receipts(date_from=date(2025, 3, 12), date_to=date(2025, 3, 12))
    from_date = await service.search_receipts(date_from=date(2025, 3, 11))
    until_date = await service.search_receipts(date_to=date(2025, 3, 10))
    canceled_in_range = await service.search_receipts(
        date_from=date(2025, 3, 1), date_to=date(2025, 3, 31), state="anu"
    )

    assert [r.id for r in by_order.receipts] == [second.receipt.id, first.receipt.id]
    assert [r.id for r in same_day.receipts] == [second.receipt.id]
    assert [r.id for r in from_date.receipts] == [second.receipt.id]
    assert [r.id for r in until_date.receipts] == [first.receipt.id]
    assert [r.id for r in canceled_in_range.receipts] == [first.receipt.id]
    assert (await service.search_receipts(order_id="OC-2000-000001")).total_receipts == 0


async def test_search_receipts_requires_valid_criteria(catalog):
    service = ReceivingService(catalog)

    with pytest.raises(ValidationError):
        await service.search_receipts()
    with pytest.raises(ValidationError):
        await service.search_receipts(date_from=date(2025, 3, 12), date_to=date(2025, 3, 11))
    with pytest.raises(ValidationError):
        await service.search_receipts(state="XYZ")
