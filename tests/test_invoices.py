import re
from decimal import Decimal

import pytest

from app.core.exceptions import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from app.modules.invoices.schemas import InvoiceCreate
from app.modules.invoices.service import InvoiceService
from app.shared.database.models import (
    Cart, CartLine, InventoryAdjustment, Invoice, InvoiceLine, Product
)
from app.shared.services.stock_ledger import StockLedger

pytestmark = pytest.mark.anyio

CASHIER_EMPLOYEE = 3
WEB_USER = 50


def product(db, product_id):
    db.expire_all()
    return db.get(Product, product_id)


def pos_invoice(**overrides):
    data = {
        "customer_id": 1,
        "payment_method_id": 1,
        "tax_rate_id": 1,
        "lines": [{"product_id": "P004", "quantity": 4}],
    }
    data.update(overrides)
    return InvoiceCreate(**data)


async def test_pos_invoice_uses_sale_price_and_moves_stock(catalog):
    response = await InvoiceService(catalog).create_invoice(pos_invoice(), employee_id=CASHIER_EMPLOYEE, user_id=3)

    invoice = response.invoice
    assert re.match(r"^F-\d{4}-000001$", invoice.id)
    assert invoice.channel == "POS"
    assert invoice.state == "EMI"
    assert invoice.employee_id == CASHIER_EMPLOYEE
    assert invoice.lines[0].unit_price == Decimal("1.250")
    assert invoice.subtotal == Decimal("5.000")
    assert invoice.tax_amount == Decimal("0.750")
    assert invoice.total == Decimal("5.750")

    p004 = product(catalog, "P004")
    assert p004.outflow == 4
    assert p004.current_balance == 26
    assert StockLedger.check_balance_identity(p004)


async def test_tax_is_rounded_on_each_step(catalog):
    response = await InvoiceService(catalog).create_invoice(
        pos_invoice(tax_rate_id=2, lines=[{"product_id": "P004", "quantity": 4, "unit_price": "25"}]),
        employee_id=CASHIER_EMPLOYEE
    )

    assert response.invoice.subtotal == Decimal("100.000")
    assert response.invoice.tax_percentage == Decimal("12.00")
    assert response.invoice.tax_amount == Decimal("12.000")
    assert response.invoice.total == Decimal("112.000")


async def test_insufficient_stock_creates_nothing(catalog):
    with pytest.raises(InsufficientStockError) as exc:
        await InvoiceService(catalog).create_invoice(
            pos_invoice(lines=[{"product_id": "P005", "quantity": 2}]),
            employee_id=CASHIER_EMPLOYEE
        )

    assert exc.value.shortages == [
        {"product_id": "P005", "description": "Agua mineral 500ml", "available": 1, "requested": 2}
    ]
    assert catalog.query(Invoice).count() == 0
    assert catalog.query(InvoiceLine).count() == 0
    assert product(catalog, "P005").current_balance == 1


async def test_all_shortages_are_reported(catalog):
    with pytest.raises(InsufficientStockError) as exc:
        await InvoiceService(catalog).create_invoice(
            pos_invoice(lines=[
                {"product_id": "P001", "quantity": 1},
                {"product_id": "P004", "quantity": 31},
                {"product_id": "P005", "quantity": 1},
            ]),
            employee_id=CASHIER_EMPLOYEE
        )

    assert [s["product_id"] for s in exc.value.shortages] == ["P001", "P004"]
    assert product(catalog, "P004").current_balance == 30


async def test_customer_lookup_by_document(catalog):
    response = await InvoiceService(catalog).create_invoice(
        pos_invoice(customer_id=None, customer_document="9999999999"),
        employee_id=CASHIER_EMPLOYEE
    )

    assert response.invoice.customer_id == 2
    assert response.invoice.customer.full_name == "Consumidor Final"


async def test_pos_defaults_payment_method(catalog):
    response = await InvoiceService(catalog).create_invoice(
        pos_invoice(payment_method_id=None), employee_id=CASHIER_EMPLOYEE
    )

    assert response.invoice.payment_method_id == 1


async def test_web_requires_payment_method(catalog):
    with pytest.raises(ValidationError):
        await InvoiceService(catalog).create_invoice(pos_invoice(payment_method_id=None), user_id=WEB_USER)


@pytest.mark.parametrize("overrides, error", [
    ({"tax_rate_id": 3}, ValidationError),
    ({"tax_rate_id": 4}, ValidationError),
    ({"tax_rate_id": 99}, NotFoundError),
    ({"payment_method_id": 99}, NotFoundError),
    ({"customer_id": 77}, NotFoundError),
    ({"customer_id": None}, ValidationError),
    ({"lines": []}, ValidationError),
    ({"lines": None}, ValidationError),
    ({"cart_id": "abc"}, ValidationError),
    ({"lines": [{"product_id": "P003", "quantity": 1}]}, ValidationError),
    ({"lines": [{"product_id": "P999", "quantity": 1}]}, NotFoundError),
    ({"lines": [{"product_id": "P004", "quantity": 0}]}, ValidationError),
    ({"lines": [{"product_id": "P004", "quantity": 1}, {"product_id": "P004", "quantity": 1}]}, ValidationError),
])
async def test_create_invoice_validation(catalog, overrides, error):
    with pytest.raises(error):
        await InvoiceService(catalog).create_invoice(pos_invoice(**overrides), employee_id=CASHIER_EMPLOYEE)

    assert catalog.query(Invoice).count() == 0


async def test_cart_checkout_empties_cart(catalog, cart):
    response = await InvoiceService(catalog).create_invoice(
        InvoiceCreate(customer_id=1, payment_method_id=2, tax_rate_id=1, cart_id=cart),
        user_id=WEB_USER
    )

    invoice = response.invoice
    assert invoice.channel == "WEB"
    assert invoice.cart_id == cart
    assert invoice.user_id == WEB_USER
    assert {(l.product_id, l.quantity) for l in invoice.lines} == {("P004", 3), ("P005", 1)}
    assert catalog.query(CartLine).filter(CartLine.cart_id == cart).count() == 0
    assert product(catalog, "P005").current_balance == 0


async def test_cart_checkout_with_shortage_keeps_cart(catalog, cart):
    catalog.add(CartLine(cart_id=cart, product_id="P002", quantity=1))
    catalog.commit()

    with pytest.raises(InsufficientStockError):
        await InvoiceService(catalog).create_invoice(
            InvoiceCreate(customer_id=1, payment_method_id=2, tax_rate_id=1, cart_id=cart),
            user_id=WEB_USER
        )

    assert catalog.query(CartLine).filter(CartLine.cart_id == cart).count() == 4


async def test_missing_and_empty_cart(catalog):
    catalog.add(Cart(id="empty-cart", customer_id=1))
    catalog.commit()
    service = InvoiceService(catalog)

    with pytest.raises(NotFoundError):
        await service.create_invoice(
            InvoiceCreate(customer_id=1, payment_method_id=2, tax_rate_id=1, cart_id="no-such-cart"),
            user_id=WEB_USER
        )
    with pytest.raises(ValidationError):
        await service.create_invoice(
            InvoiceCreate(customer_id=1, payment_method_id=2, tax_rate_id=1, cart_id="empty-cart"),
            user_id=WEB_USER
        )


async def test_invoice_ids_are_sequential(catalog):
    service = InvoiceService(catalog)
    first = await service.create_invoice(pos_invoice(), employee_id=CASHIER_EMPLOYEE)
    second = await service.create_invoice(pos_invoice(), employee_id=CASHIER_EMPLOYEE)

    assert first.invoice.id.endswith("-000001")
    assert second.invoice.id.endswith("-000002")
    assert first.invoice.id[:7] == second.invoice.id[:7]


async def test_cancel_restores_stock_and_logs_adjustment(catalog):
    service = InvoiceService(catalog)
    created = await service.create_invoice(pos_invoice(), employee_id=CASHIER_EMPLOYEE)

    response = await service.cancel_invoice(created.invoice.id, "Error de digitación", employee_id=1)

    assert response.invoice.state == "ANU"
    assert response.invoice.cancel_reason == "Error de digitación"

    p004 = product(catalog, "P004")
    assert p004.outflow == 0
    assert p004.current_balance == 30
    assert StockLedger.check_balance_identity(p004)

    adjustment = catalog.query(InventoryAdjustment).one()
    assert adjustment.direction == "E"
    assert adjustment.origin == "FAC"
    assert adjustment.reference == created.invoice.id
    assert [(l.product_id, l.quantity) for l in adjustment.lines] == [("P004", 4)]


async def test_cancel_only_issued_invoices(catalog):
    service = InvoiceService(catalog)
    created = await service.create_invoice(pos_invoice(), employee_id=CASHIER_EMPLOYEE)
    await service.cancel_invoice(created.invoice.id)

    with pytest.raises(ConflictError):
        await service.cancel_invoice(created.invoice.id)

    assert product(catalog, "P004").current_balance == 30


async def test_cancel_validates_invoice_id(catalog):
    service = InvoiceService(catalog)

    with pytest.raises(ValidationError):
        await service.cancel_invoice("FAC-1")
    with pytest.raises(NotFoundError):
        await service.cancel_invoice("F-2020-000001")


async def test_print_data_marks_canceled_invoice(catalog):
    service = InvoiceService(catalog)
    created = await service.create_invoice(pos_invoice(), employee_id=CASHIER_EMPLOYEE)

    issued = await service.get_print_data(created.invoice.id)
    assert issued.data.state_text == "EMITIDA"
    assert issued.data.watermark is None
    assert issued.data.customer.full_name == "Ana Pérez"
    assert issued.data.payment_method == "EFECTIVO"
    assert issued.data.lines[0].line == 1
    assert issued.data.lines[0].description == "Cerveza lata 355ml"
    assert issued.data.tax_amount == Decimal("0.750")

    await service.cancel_invoice(created.invoice.id)
    canceled = await service.get_print_data(created.invoice.id)
    assert canceled.data.state_text == "ANULADA"
    assert canceled.data.watermark == "ANULADA"


async def test_mark_picked_up_web_order_once(catalog):
    service = InvoiceService(catalog)
    created = await service.create_invoice(pos_invoice(), user_id=WEB_USER)

    pending = await service.list_invoices(pending_pickup=True)
    assert [i.id for i in pending.invoices] == [created.invoice.id]

    response = await service.mark_picked_up(created.invoice.id)
    assert response.invoice.state == "ENT"
    assert response.invoice.picked_up_at is not None

    with pytest.raises(ConflictError):
        await service.mark_picked_up(created.invoice.id)
    assert (await service.list_invoices(pending_pickup=True)).total_invoices == 0


async def test_mark_picked_up_rejects_pos_invoice(catalog):
    service = InvoiceService(catalog)
    created = await service.create_invoice(pos_invoice(), employee_id=CASHIER_EMPLOYEE)

    with pytest.raises(ValidationError):
        await service.mark_picked_up(created.invoice.id)


async def test_list_invoices_filters(catalog):
    service = InvoiceService(catalog)
    pos = await service.create_invoice(pos_invoice(), employee_id=CASHIER_EMPLOYEE)
    web = await service.create_invoice(pos_invoice(customer_id=2), user_id=WEB_USER)
    await service.cancel_invoice(pos.invoice.id)

    assert [i.id for i in (await service.list_invoices(channel="web")).invoices] == [web.invoice.id]
    assert [i.id for i in (await service.list_invoices(state="ANU")).invoices] == [pos.invoice.id]
    assert [i.id for i in (await service.list_invoices(customer="Ana")).invoices] == [pos.invoice.id]
    assert [i.id for i in (await service.list_invoices(employee_id=CASHIER_EMPLOYEE)).invoices] == [pos.invoice.id]
    assert (await service.list_invoices(invoice_id=web.invoice.id)).total_invoices == 1

    with pytest.raises(ValidationError):
        await service.list_invoices(state="XXX")
    with pytest.raises(ValidationError):
        await service.list_invoices(channel="TEL")
    with pytest.raises(ValidationError):
        await service.list_invoices(invoice_id="123")
