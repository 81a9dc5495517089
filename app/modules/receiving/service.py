# app/modules/receiving/service.py
from sqlalchemy.orm import Session
from typing import List, Optional, Dict
from datetime import date, datetime
import logging

from app.core.exceptions import ValidationError, NotFoundError, ConflictError
from app.shared.database.models import Receipt, ReceiptLine, PurchaseOrderLine
from app.shared.database.unit_of_work import unit_of_work
from app.shared.schemas.common import StockSnapshot
from app.shared.services.stock_ledger import StockLedger
from app.shared.states import (
    ReceiptState, AdjustmentDirection, AdjustmentOrigin,
    receipt_transition, purchase_order_transition
)
from app.modules.purchases.service import resolve_order_state
from .repository import ReceivingRepository
from .schemas import (
    ReceiptOpen, ReceiptLineInput, ReceiptResponse, ReceiptListResponse,
    ReceiptApprovalResponse, ReceiptOut
)

logger = logging.getLogger(__name__)

class ReceivingService:
    """
    Recepciones de bodega contra órdenes de compra.

    Una recepción ABI (abierta) sólo registra cantidades; el stock se mueve
    únicamente al aprobarla (APR). Anular una recepción abierta no toca stock.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repository = ReceivingRepository(db)

    async def open_receipt(self, receipt_data: ReceiptOpen, employee_id: Optional[int]) -> ReceiptResponse:
        """
        Abrir recepción para una orden PEN o PAR.

        Sin líneas se propone una por cada producto con saldo pendiente,
        con la cantidad recibida igual a lo pendiente.
        """
        order_id = receipt_data.purchase_order_id.strip()

        with unit_of_work(self.db, f"Apertura de recepción para orden {order_id}"):
            order = self.repository.get_order(order_id, for_update=True)
            if not order:
                raise NotFoundError(f"Orden de compra {order_id} no encontrada")

            purchase_order_transition(order.state, "receive")

            open_receipt = self.repository.find_open_receipt(order.id)
            if open_receipt:
                raise ConflictError(
                    f"La orden {order.id} ya tiene la recepción #{open_receipt.id} abierta",
                    details={"receipt_id": open_receipt.id}
                )

            order_lines = self.repository.get_order_lines(order.id)

            if receipt_data.lines is None:
                lines = [
                    ReceiptLine(
                        product_id=product_id,
                        expected_quantity=order_line.pending_quantity,
                        quantity_received=order_line.pending_quantity
                    )
                    for product_id, order_line in order_lines.items()
                    if order_line.pending_quantity > 0
                ]
            else:
                if not receipt_data.lines:
                    raise ValidationError("Debe indicar al menos una línea a recibir")
                quantities = self._validate_quantities(receipt_data.lines, order_lines)
                lines = [
                    ReceiptLine(
                        product_id=product_id,
                        expected_quantity=order_lines[product_id].pending_quantity,
                        quantity_received=quantity
                    )
                    for product_id, quantity in quantities.items()
                ]

            if not lines:
                raise ValidationError(f"La orden {order.id} no tiene productos pendientes de recibir")

            receipt = self.repository.create_receipt(
                Receipt(
                    purchase_order_id=order.id,
                    employee_id=employee_id,
                    state=ReceiptState.DRAFT.value,
                    notes=receipt_data.notes,
                    created_at=datetime.now()
                ),
                lines
            )

            logger.info(
                f"Recepción #{receipt.id} abierta - Orden: {order.id}, "
                f"{len(lines)} producto(s), empleado {employee_id}"
            )

        return ReceiptResponse(
            success=True,
            message=f"Recepción #{receipt.id} registrada",
            receipt=ReceiptOut.model_validate(receipt)
        )

    async def adjust_lines(self, receipt_id: int, lines: List[ReceiptLineInput]) -> ReceiptResponse:
        """Sobrescribir cantidades recibidas de una recepción abierta"""
        with unit_of_work(self.db, f"Modificación de recepción #{receipt_id}"):
            receipt = self._get_receipt_or_404(receipt_id, for_update=True)
            receipt_transition(receipt.state, "edit")

            if not lines:
                raise ValidationError("Debe indicar al menos una línea a modificar")

            order_lines = self.repository.get_order_lines(receipt.purchase_order_id)
            quantities = self._validate_quantities(lines, order_lines)

            current = {line.product_id: line for line in receipt.lines}
            for product_id, quantity in quantities.items():
                if product_id in current:
                    current[product_id].quantity_received = quantity
                else:
                    receipt.lines.append(ReceiptLine(
                        product_id=product_id,
                        expected_quantity=order_lines[product_id].pending_quantity,
                        quantity_received=quantity
                    ))

            self.db.flush()
            logger.info(f"Recepción #{receipt.id} modificada - {len(quantities)} línea(s)")

        return ReceiptResponse(
            success=True,
            message=f"Recepción #{receipt.id} actualizada",
            receipt=ReceiptOut.model_validate(receipt)
        )

    async def approve_receipt(
        self,
        receipt_id: int,
        employee_id: Optional[int],
        adjustment_reason: Optional[str] = None
    ) -> ReceiptApprovalResponse:
        """
        Aprobar recepción: único punto donde el stock de compras se mueve.

        En una sola transacción y con filas bloqueadas:
        1. Revalida cantidades contra lo pendiente de la orden
        2. Suma ingresos y saldo, recalcula costo promedio
        3. Acumula cantidad recibida en las líneas de la orden
        4. Registra ajuste de ingreso (origen REC) con su detalle
        5. Marca la recepción APR y recalcula el estado de la orden
        """
        with unit_of_work(self.db, f"Aprobación de recepción #{receipt_id}"):
            receipt = self._get_receipt_or_404(receipt_id, for_update=True)
            new_state = receipt_transition(receipt.state, "approve")

            order = self.repository.get_order(receipt.purchase_order_id, for_update=True)
            purchase_order_transition(order.state, "receive")
            order_lines = self.repository.get_order_lines(order.id, for_update=True)

            received = {
                line.product_id: line.quantity_received
                for line in receipt.lines
                if line.quantity_received > 0
            }
            if not received:
                raise ValidationError(f"La recepción #{receipt.id} no tiene cantidades recibidas")

            self._ensure_within_pending(received, order_lines)

            products = StockLedger.lock_products(self.db, received.keys())
            for product_id, quantity in received.items():
                order_line = order_lines[product_id]
                StockLedger.register_inflow(products[product_id], quantity, order_line.unit_cost)
                order_line.quantity_received += quantity

            adjustment = StockLedger.record_adjustment(
                self.db,
                reason=adjustment_reason or f"Recepción #{receipt.id} de la orden {order.id}",
                direction=AdjustmentDirection.INFLOW,
                origin=AdjustmentOrigin.RECEIPT,
                lines=sorted(received.items()),
                employee_id=employee_id,
                reference=order.id
            )

            now = datetime.now()
            receipt.state = new_state.value
            receipt.approved_at = now
            receipt.approved_by = employee_id
            receipt.adjustment_id = adjustment.id

            previous_order_state = order.state
            order.state = resolve_order_state(order_lines.values()).value
            order.updated_at = now
            self.db.flush()

            stock = [StockSnapshot(**StockLedger.snapshot(products[pid])) for pid in sorted(received)]

            logger.info(
                f"Recepción #{receipt.id} aprobada - Orden {order.id}: "
                f"{previous_order_state} -> {order.state}, ajuste #{adjustment.id}"
            )

        return ReceiptApprovalResponse(
            success=True,
            message=f"Recepción #{receipt.id} aprobada. Stock actualizado",
            receipt=ReceiptOut.model_validate(receipt),
            order_state=order.state,
            adjustment_id=adjustment.id,
            stock=stock,
            summary={
                "products": len(received),
                "units": sum(received.values())
            }
        )

    async def cancel_receipt(self, receipt_id: int, reason: Optional[str] = None) -> ReceiptResponse:
        """Anular recepción abierta; no afecta stock"""
        with unit_of_work(self.db, f"Anulación de recepción #{receipt_id}"):
            receipt = self._get_receipt_or_404(receipt_id, for_update=True)
            receipt.state = receipt_transition(receipt.state, "cancel").value
            receipt.canceled_at = datetime.now()
            receipt.cancel_reason = reason
            self.db.flush()

            logger.info(f"Recepción #{receipt.id} anulada")

        return ReceiptResponse(
            success=True,
            message=f"Recepción #{receipt.id} anulada",
            receipt=ReceiptOut.model_validate(receipt)
        )

    async def get_receipt(self, receipt_id: int) -> ReceiptResponse:
        receipt = self._get_receipt_or_404(receipt_id)
        return ReceiptResponse(
            success=True,
            message="Recepción obtenida",
            receipt=ReceiptOut.model_validate(receipt)
        )

    async def list_receipts(self, order_id: Optional[str] = None, state: Optional[str] = None) -> ReceiptListResponse:
        receipts = self.repository.list_receipts(order_id=order_id, state=self._parse_state(state))
        return ReceiptListResponse(
            success=True,
            message=f"{len(receipts)} recepción(es)",
            receipts=[ReceiptOut.model_validate(r) for r in receipts],
            total_receipts=len(receipts)
        )

    async def search_receipts(
        self,
        order_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        state: Optional[str] = None
    ) -> ReceiptListResponse:
        """Buscar por orden de compra, rango de fechas y/o estado (al menos un criterio)"""
        if not any([order_id, date_from, date_to, state]):
            raise ValidationError("Debe indicar al menos un criterio de búsqueda")
        if date_from and date_to and date_from > date_to:
            raise ValidationError("La fecha inicial no puede ser mayor a la fecha final")

        receipts = self.repository.list_receipts(
            order_id=order_id, state=self._parse_state(state), date_from=date_from, date_to=date_to
        )
        return ReceiptListResponse(
            success=True,
            message=f"{len(receipts)} recepción(es) encontradas",
            receipts=[ReceiptOut.model_validate(r) for r in receipts],
            total_receipts=len(receipts)
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_receipt_or_404(self, receipt_id: int, for_update: bool = False) -> Receipt:
        receipt = self.repository.get_receipt(receipt_id, for_update=for_update)
        if not receipt:
            raise NotFoundError(f"Recepción #{receipt_id} no encontrada")
        return receipt

    @staticmethod
    def _parse_state(state: Optional[str]) -> Optional[str]:
        if not state:
            return None
        try:
            return ReceiptState(state.upper()).value
        except ValueError:
            raise ValidationError(
                f"Estado inválido: {state}. Valores permitidos: "
                f"{', '.join(s.value for s in ReceiptState)}"
            )

    def _validate_quantities(
        self,
        lines: List[ReceiptLineInput],
        order_lines: Dict[str, PurchaseOrderLine]
    ) -> Dict[str, int]:
        """Cada producto debe ser de la orden y 0 <= cantidad <= pendiente"""
        quantities = {}
        for line in lines:
            product_id = line.product_id.strip()
            if product_id in quantities:
                raise ValidationError(f"Producto duplicado en la recepción: {product_id}")
            if product_id not in order_lines:
                raise NotFoundError(f"El producto {product_id} no pertenece a la orden de compra")
            if line.quantity_received < 0:
                raise ValidationError(f"La cantidad recibida de {product_id} no puede ser negativa")
            quantities[product_id] = line.quantity_received

        self._ensure_within_pending(quantities, order_lines)
        return quantities

    @staticmethod
    def _ensure_within_pending(quantities: Dict[str, int], order_lines: Dict[str, PurchaseOrderLine]) -> None:
        exceeded = [
            {
                "product_id": product_id,
                "pending": order_lines[product_id].pending_quantity,
                "received": quantity
            }
            for product_id, quantity in quantities.items()
            if quantity > order_lines[product_id].pending_quantity
        ]
        if exceeded:
            detail = ", ".join(
                f"{e['product_id']} (pendiente: {e['pending']}, recibido: {e['received']})" for e in exceeded
            )
            raise ValidationError(
                f"Cantidad recibida mayor a lo pendiente: {detail}",
                details={"exceeded": exceeded}
            )
