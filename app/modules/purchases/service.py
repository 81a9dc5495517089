# app/modules/purchases/service.py
from sqlalchemy.orm import Session
from typing import List, Optional, Iterable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
import logging

from app.core.exceptions import ValidationError, NotFoundError, ConflictError
from app.shared.database.models import PurchaseOrder
from app.shared.database.unit_of_work import unit_of_work
from app.shared.money import line_subtotal, round3, sum_amounts, to_decimal
from app.shared.services.catalog_service import CatalogService
from app.shared.services.sequence_service import SequenceService
from app.shared.states import PurchaseOrderState, purchase_order_transition
from .repository import PurchaseOrderRepository
from .schemas import (
    PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderLineInput,
    PurchaseOrderResponse, PurchaseOrderListResponse, PurchaseOrderOut, PurchaseOrderSummary
)

logger = logging.getLogger(__name__)

MAX_LINE_QUANTITY = 999999
MAX_UNIT_COST = Decimal("999999.999")
ORDER_PREFIX = "OC"


def resolve_order_state(lines: Iterable) -> PurchaseOrderState:
    """
    Estado de la orden según lo recibido en sus líneas:
    todo recibido -> CER, algo recibido -> PAR, nada -> PEN
    """
    lines = list(lines)
    if lines and all(line.quantity_received >= line.quantity for line in lines):
        return PurchaseOrderState.CLOSED
    if any(line.quantity_received > 0 for line in lines):
        return PurchaseOrderState.PARTIAL
    return PurchaseOrderState.PENDING


class PurchaseOrderService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = PurchaseOrderRepository(db)
        self.catalog = CatalogService(db)

    async def create_order(self, order_data: PurchaseOrderCreate) -> PurchaseOrderResponse:
        """
        Crear orden de compra en estado PEN.

        Validaciones:
        - Proveedor existente y activo
        - Al menos una línea, sin productos repetidos
        - Cantidad entre 1 y 999,999; costo entre 0 y 999,999.999
        - Productos existentes y activos
        """
        with unit_of_work(self.db, "Creación de orden de compra"):
            supplier = self.catalog.require_active_supplier(order_data.supplier_id)
            lines = self._validate_lines(order_data.lines)
            total = sum_amounts(line['subtotal'] for line in lines)

            order_id = SequenceService.next_id(
                self.db, ORDER_PREFIX, datetime.now().year, PurchaseOrder.id
            )
            order = self.repository.create(order_id, supplier.id, lines, total)

            logger.info(
                f"Orden de compra {order.id} creada - Proveedor: {supplier.id}, "
                f"{len(lines)} línea(s), total {total}"
            )

        return PurchaseOrderResponse(
            success=True,
            message=f"Orden de compra {order.id} creada exitosamente",
            order=PurchaseOrderOut.model_validate(order)
        )

    async def update_order(self, order_id: str, order_data: PurchaseOrderUpdate) -> PurchaseOrderResponse:
        """
        Reemplazar el detalle de una orden PEN sin recepciones.
        El detalle anterior se borra completo y se recalcula el total.
        """
        with unit_of_work(self.db, f"Actualización de orden {order_id}"):
            order = self._get_order_or_404(order_id, for_update=True)

            purchase_order_transition(order.state, "edit")
            receipt_count = self.repository.count_receipts(order.id)
            if receipt_count:
                raise ConflictError(
                    f"No se puede modificar la orden {order.id}: tiene {receipt_count} recepción(es) registradas",
                    details={"receipt_count": receipt_count}
                )

            lines = self._validate_lines(order_data.lines)
            total = sum_amounts(line['subtotal'] for line in lines)
            order = self.repository.replace_lines(order, lines, total)

            logger.info(f"Orden de compra {order.id} actualizada - {len(lines)} línea(s), total {total}")

        return PurchaseOrderResponse(
            success=True,
            message=f"Orden de compra {order.id} actualizada",
            order=PurchaseOrderOut.model_validate(order)
        )

    async def cancel_order(self, order_id: str, reason: Optional[str] = None) -> PurchaseOrderResponse:
        """Anular una orden sin recepciones. No afecta stock."""
        with unit_of_work(self.db, f"Anulación de orden {order_id}"):
            order = self._get_order_or_404(order_id, for_update=True)

            if order.state == PurchaseOrderState.CANCELED.value:
                raise ValidationError(f"La orden de compra {order.id} ya está anulada")

            receipt_count = self.repository.count_receipts(order.id)
            if receipt_count:
                raise ConflictError(
                    f"No se puede anular la orden {order.id}: tiene {receipt_count} recepción(es) registradas",
                    details={"receipt_count": receipt_count}
                )

            order.state = purchase_order_transition(order.state, "cancel").value
            order.canceled_at = datetime.now()
            order.cancel_reason = reason
            self.db.flush()

            logger.info(f"Orden de compra {order.id} anulada")

        return PurchaseOrderResponse(
            success=True,
            message=f"Orden de compra {order.id} anulada",
            order=PurchaseOrderOut.model_validate(order)
        )

    async def get_order(self, order_id: str) -> PurchaseOrderResponse:
        order = self._get_order_or_404(order_id)
        return PurchaseOrderResponse(
            success=True,
            message="Orden de compra obtenida",
            order=PurchaseOrderOut.model_validate(order)
        )

    async def list_orders(self, limit: int = 100, offset: int = 0) -> PurchaseOrderListResponse:
        orders = self.repository.list_orders(limit=limit, offset=offset)
        return PurchaseOrderListResponse(
            success=True,
            message=f"{len(orders)} orden(es) de compra",
            orders=[PurchaseOrderSummary.model_validate(o) for o in orders],
            total_orders=len(orders)
        )

    async def search_orders(
        self,
        supplier_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        state: Optional[str] = None
    ) -> PurchaseOrderListResponse:
        """Buscar por proveedor, rango de fechas y/o estado (al menos un criterio)"""
        if not any([supplier_id, date_from, date_to, state]):
            raise ValidationError("Debe indicar al menos un criterio de búsqueda")
        if date_from and date_to and date_from > date_to:
            raise ValidationError("La fecha inicial no puede ser mayor a la fecha final")
        if state:
            try:
                state = PurchaseOrderState(state.upper()).value
            except ValueError:
                raise ValidationError(
                    f"Estado inválido: {state}. Valores permitidos: "
                    f"{', '.join(s.value for s in PurchaseOrderState)}"
                )

        orders = self.repository.search(supplier_id, date_from, date_to, state)
        return PurchaseOrderListResponse(
            success=True,
            message=f"{len(orders)} orden(es) encontradas",
            orders=[PurchaseOrderSummary.model_validate(o) for o in orders],
            total_orders=len(orders)
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_order_or_404(self, order_id: str, for_update: bool = False) -> PurchaseOrder:
        order = self.repository.get_by_id(order_id, for_update=for_update)
        if not order:
            raise NotFoundError(f"Orden de compra {order_id} no encontrada")
        return order

    def _validate_lines(self, lines: List[PurchaseOrderLineInput]) -> List[dict]:
        """Validar el detalle completo y calcular subtotales (3 decimales)"""
        if not lines:
            raise ValidationError("La orden de compra debe tener al menos un producto")

        seen = set()
        validated = []
        for index, line in enumerate(lines, start=1):
            if line.product_id in seen:
                raise ValidationError(
                    f"Producto duplicado en el detalle: {line.product_id}",
                    details={"line": index, "product_id": line.product_id}
                )
            seen.add(line.product_id)

            if line.quantity <= 0 or line.quantity > MAX_LINE_QUANTITY:
                raise ValidationError(
                    f"Línea {index}: la cantidad debe estar entre 1 y {MAX_LINE_QUANTITY:,}",
                    details={"line": index, "quantity": line.quantity}
                )

            try:
                unit_cost = to_decimal(line.unit_cost)
            except InvalidOperation:
                raise ValidationError(f"Línea {index}: costo unitario inválido")
            if not unit_cost.is_finite() or unit_cost <= 0 or unit_cost > MAX_UNIT_COST:
                raise ValidationError(
                    f"Línea {index}: el costo unitario debe ser mayor a 0 y máximo {MAX_UNIT_COST:,}",
                    details={"line": index, "unit_cost": str(line.unit_cost)}
                )
            if unit_cost != round3(unit_cost):
                raise ValidationError(
                    f"Línea {index}: el costo unitario admite máximo 3 decimales",
                    details={"line": index, "unit_cost": str(line.unit_cost)}
                )

            self.catalog.require_active_product(line.product_id)

            validated.append({
                "product_id": line.product_id,
                "quantity": line.quantity,
                "unit_cost": unit_cost,
                "subtotal": line_subtotal(line.quantity, unit_cost)
            })

        return validated
