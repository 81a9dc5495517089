# app/modules/invoices/service.py
from sqlalchemy.orm import Session
from typing import Optional, List, Dict
from datetime import date, datetime
from decimal import Decimal
import logging
import re

from app.config.settings import settings
from app.core.exceptions import ValidationError, NotFoundError, ConflictError
from app.shared.database.models import Invoice, InvoiceLine
from app.shared.database.unit_of_work import unit_of_work
from app.shared.money import line_subtotal, sum_amounts, tax_amount, round3, to_decimal
from app.shared.services.cart_service import CartService
from app.shared.services.catalog_service import CatalogService
from app.shared.services.sequence_service import SequenceService
from app.shared.services.stock_ledger import StockLedger
from app.shared.states import (
    InvoiceState, SalesChannel, RecordStatus, AdjustmentDirection, AdjustmentOrigin,
    invoice_transition, state_label
)
from .repository import InvoiceRepository
from .schemas import (
    InvoiceCreate, InvoiceLineInput, InvoiceResponse, InvoiceListResponse, InvoiceOut,
    InvoicePrintResponse, InvoicePrintData, PrintCustomer, PrintLine
)

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "F"
INVOICE_ID_PATTERN = re.compile(r"^F-\d{4}-\d{6}$")

class InvoiceService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = InvoiceRepository(db)
        self.catalog = CatalogService(db)
        self.carts = CartService(db)

    async def create_invoice(
        self,
        invoice_data: InvoiceCreate,
        employee_id: Optional[int] = None,
        user_id: Optional[int] = None
    ) -> InvoiceResponse:
        """
        Emitir factura (estado EMI).

        Canal POS si la emite un empleado, WEB si no. El stock se valida con
        las filas de producto bloqueadas y la factura, su detalle, los egresos
        y el vaciado del carrito se confirman juntos.
        """
        if (invoice_data.cart_id is None) == (invoice_data.lines is None):
            raise ValidationError("Debe indicar el detalle de productos o el carrito, no ambos")

        channel = SalesChannel.POS if employee_id is not None else SalesChannel.WEB

        with unit_of_work(self.db, "Emisión de factura"):
            customer = self.catalog.require_customer(
                invoice_data.customer_id, invoice_data.customer_document
            )

            payment_method_id = invoice_data.payment_method_id
            if payment_method_id is None:
                if channel is not SalesChannel.POS:
                    raise ValidationError("El método de pago es requerido")
                payment_method_id = settings.default_pos_payment_method_id
            payment_method = self.catalog.require_payment_method(payment_method_id)
            tax_rate = self.catalog.require_valid_tax_rate(invoice_data.tax_rate_id)

            if invoice_data.cart_id is not None:
                requested = self._lines_from_cart(invoice_data.cart_id)
            else:
                requested = self._validate_lines(invoice_data.lines)

            quantities = {line.product_id: line.quantity for line in requested}
            products = StockLedger.lock_products(self.db, quantities.keys())

            inactive = [pid for pid, p in products.items() if p.state != RecordStatus.ACTIVE.value]
            if inactive:
                raise ValidationError(f"Producto(s) inactivo(s): {', '.join(inactive)}")

            StockLedger.ensure_available(products, quantities)

            lines = []
            for line in requested:
                unit_price = round3(line.unit_price if line.unit_price is not None
                                    else products[line.product_id].sale_price)
                lines.append(InvoiceLine(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    subtotal=line_subtotal(line.quantity, unit_price),
                    state=RecordStatus.ACTIVE.value
                ))

            subtotal = sum_amounts(line.subtotal for line in lines)
            tax = tax_amount(subtotal, tax_rate.percentage)
            now = datetime.now()

            invoice_id = SequenceService.next_id(self.db, INVOICE_PREFIX, now.year, Invoice.id)
            invoice = self.repository.create(
                Invoice(
                    id=invoice_id,
                    customer_id=customer.id,
                    channel=channel.value,
                    payment_method_id=payment_method.id,
                    tax_rate_id=tax_rate.id,
                    employee_id=employee_id,
                    user_id=user_id,
                    cart_id=invoice_data.cart_id,
                    state=InvoiceState.ISSUED.value,
                    subtotal=subtotal,
                    tax_percentage=tax_rate.percentage,
                    tax_amount=tax,
                    total=round3(subtotal + tax),
                    issued_at=now
                ),
                lines
            )

            for product_id, quantity in quantities.items():
                StockLedger.register_outflow(products[product_id], quantity)

            if invoice_data.cart_id is not None:
                self.carts.clear_cart(invoice_data.cart_id)

            self.db.flush()
            logger.info(
                f"Factura {invoice.id} emitida - Canal {channel.value}, cliente {customer.id}, "
                f"{len(lines)} línea(s), total {invoice.total}"
            )

        return InvoiceResponse(
            success=True,
            message="Factura creada correctamente",
            invoice=InvoiceOut.model_validate(invoice)
        )

    async def cancel_invoice(
        self,
        invoice_id: str,
        reason: Optional[str] = None,
        employee_id: Optional[int] = None
    ) -> InvoiceResponse:
        """
        Anular factura emitida (EMI -> ANU).

        La mercadería vuelve al stock: se revierten los egresos y se deja un
        ajuste de entrada con origen FAC como constancia.
        """
        self._validate_invoice_id(invoice_id)

        with unit_of_work(self.db, f"Anulación de factura {invoice_id}"):
            invoice = self.repository.get_by_id(invoice_id, for_update=True)
            if not invoice:
                raise NotFoundError("La factura no existe")

            new_state = invoice_transition(invoice.state, "cancel")

            quantities: Dict[str, int] = {}
            for line in invoice.lines:
                quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

            products = StockLedger.lock_products(self.db, quantities.keys())
            for product_id, quantity in quantities.items():
                StockLedger.reverse_outflow(products[product_id], quantity)

            StockLedger.record_adjustment(
                self.db,
                reason=f"Anulación de factura {invoice.id}",
                direction=AdjustmentDirection.INFLOW,
                origin=AdjustmentOrigin.INVOICE_CANCEL,
                lines=sorted(quantities.items()),
                employee_id=employee_id,
                reference=invoice.id
            )

            invoice.state = new_state.value
            invoice.canceled_at = datetime.now()
            invoice.cancel_reason = reason
            self.db.flush()

            logger.info(f"Factura {invoice.id} anulada - {len(quantities)} producto(s) devueltos al stock")

        return InvoiceResponse(
            success=True,
            message="Factura anulada correctamente",
            invoice=InvoiceOut.model_validate(invoice)
        )

    async def mark_picked_up(self, invoice_id: str) -> InvoiceResponse:
        """Marcar pedido del e-commerce como retirado en tienda (una sola vez)"""
        with unit_of_work(self.db, f"Retiro de pedido {invoice_id}"):
            invoice = self.repository.get_by_id(invoice_id, for_update=True)
            if not invoice:
                raise NotFoundError("Factura no encontrada")

            if invoice.channel != SalesChannel.WEB.value:
                raise ValidationError("Solo se pueden marcar como retirados los pedidos del e-commerce")
            if invoice.picked_up_at is not None:
                raise ConflictError("Este pedido ya fue retirado")

            invoice.state = invoice_transition(invoice.state, "deliver").value
            invoice.picked_up_at = datetime.now()
            self.db.flush()

            logger.info(f"Pedido {invoice.id} retirado")

        return InvoiceResponse(
            success=True,
            message="Pedido marcado como retirado",
            invoice=InvoiceOut.model_validate(invoice)
        )

    async def get_invoice(self, invoice_id: str) -> InvoiceResponse:
        invoice = self.repository.get_by_id(invoice_id)
        if not invoice:
            raise NotFoundError("La factura no existe")
        return InvoiceResponse(
            success=True,
            message="Factura obtenida",
            invoice=InvoiceOut.model_validate(invoice)
        )

    async def list_invoices(
        self,
        invoice_id: Optional[str] = None,
        customer: Optional[str] = None,
        customer_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        state: Optional[str] = None,
        channel: Optional[str] = None,
        employee_id: Optional[int] = None,
        pending_pickup: bool = False,
        limit: int = 100,
        offset: int = 0
    ) -> InvoiceListResponse:
        """Listar facturas; todos los filtros son opcionales y se combinan"""
        if invoice_id:
            self._validate_invoice_id(invoice_id)
        if date_from and date_to and date_from > date_to:
            raise ValidationError("La fecha inicial no puede ser mayor a la fecha final")
        if state:
            try:
                state = InvoiceState(state.upper()).value
            except ValueError:
                raise ValidationError("Estado inválido. Valores permitidos: EMI, ANU, PAG, APR, ENT")
        if channel:
            try:
                channel = SalesChannel(channel.upper()).value
            except ValueError:
                raise ValidationError("Canal inválido. Valores permitidos: WEB, POS")

        invoices = self.repository.search(
            invoice_id=invoice_id,
            customer=customer.strip() if customer else None,
            customer_id=customer_id,
            date_from=date_from,
            date_to=date_to,
            state=state,
            channel=channel,
            employee_id=employee_id,
            pending_pickup=pending_pickup,
            limit=limit,
            offset=offset
        )
        return InvoiceListResponse(
            success=True,
            message=f"{len(invoices)} factura(s)",
            invoices=[InvoiceOut.model_validate(i) for i in invoices],
            total_invoices=len(invoices)
        )

    async def get_print_data(self, invoice_id: str) -> InvoicePrintResponse:
        """Datos de impresión: encabezado, cliente, detalle, totales y marca de agua"""
        invoice = self.repository.get_by_id(invoice_id)
        if not invoice:
            raise NotFoundError("La factura no existe")

        state = InvoiceState(invoice.state)
        customer = invoice.customer

        data = InvoicePrintData(
            invoice_number=invoice.id,
            issued_at=invoice.issued_at,
            state=state.value,
            state_text=state_label(state).upper(),
            channel=invoice.channel,
            customer=PrintCustomer(
                document=customer.document,
                full_name=customer.full_name,
                address=customer.address,
                phone=customer.phone,
                email=customer.email
            ),
            employee_id=invoice.employee_id,
            payment_method=invoice.payment_method.name,
            lines=[
                PrintLine(
                    line=index,
                    product_id=line.product_id,
                    description=line.product.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=line.subtotal
                )
                for index, line in enumerate(invoice.lines, start=1)
            ],
            subtotal=invoice.subtotal,
            tax_percentage=invoice.tax_percentage,
            tax_amount=round3(to_decimal(invoice.total) - to_decimal(invoice.subtotal)),
            total=invoice.total,
            watermark="ANULADA" if state is InvoiceState.CANCELED else None
        )

        return InvoicePrintResponse(
            success=True,
            message="Datos de impresión obtenidos",
            data=data
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_invoice_id(invoice_id: str) -> None:
        if not invoice_id or not INVOICE_ID_PATTERN.match(invoice_id):
            raise ValidationError("Formato de ID de factura inválido. Debe ser F-YYYY-NNNNNN")

    def _lines_from_cart(self, cart_id: str) -> List[InvoiceLineInput]:
        cart_lines = self.carts.get_cart_lines(cart_id)
        if not cart_lines:
            raise ValidationError("El carrito está vacío")
        return [
            InvoiceLineInput(product_id=line["product_id"], quantity=line["quantity"])
            for line in cart_lines
        ]

    @staticmethod
    def _validate_lines(lines: List[InvoiceLineInput]) -> List[InvoiceLineInput]:
        if not lines:
            raise ValidationError("La factura debe tener al menos un producto")

        seen = set()
        for index, line in enumerate(lines, start=1):
            if line.product_id in seen:
                raise ValidationError(f"Producto duplicado en la factura: {line.product_id}")
            seen.add(line.product_id)

            if line.quantity <= 0:
                raise ValidationError(
                    f"Línea {index}: la cantidad debe ser mayor a 0",
                    details={"line": index, "product_id": line.product_id}
                )
            if line.unit_price is not None and to_decimal(line.unit_price) < Decimal("0"):
                raise ValidationError(f"Línea {index}: el precio unitario no puede ser negativo")
        return lines
