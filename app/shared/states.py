# app/shared/states.py
"""
Estados de los documentos del flujo de inventario.

Cada documento tiene un conjunto cerrado de estados (los códigos son los que
se persisten en la BD) y una tabla de transiciones (estado, evento) -> estado.
Cualquier par que no esté en la tabla es un ConflictError.
"""
from enum import Enum
from typing import Dict, Tuple

from app.core.exceptions import ConflictError


class RecordStatus(str, Enum):
    """Estado de datos de catálogo (producto, proveedor, IVA...)"""
    ACTIVE = "ACT"
    INACTIVE = "INA"


class PurchaseOrderState(str, Enum):
    PENDING = "PEN"
    PARTIAL = "PAR"
    CLOSED = "CER"
    CANCELED = "ANU"


class ReceiptState(str, Enum):
    DRAFT = "ABI"
    APPROVED = "APR"
    CANCELED = "ANU"


class InvoiceState(str, Enum):
    ISSUED = "EMI"
    CANCELED = "ANU"
    PAID = "PAG"
    APPROVED = "APR"
    DELIVERED = "ENT"


class SalesChannel(str, Enum):
    POS = "POS"
    WEB = "WEB"


class AdjustmentDirection(str, Enum):
    INFLOW = "E"
    OUTFLOW = "S"


class AdjustmentOrigin(str, Enum):
    MANUAL = "MAN"
    RECEIPT = "REC"
    INVOICE_CANCEL = "FAC"


class StockAdjustmentType(str, Enum):
    """Tipo de ajuste manual tal como lo envía el cliente"""
    INCREASE = "INC"
    DECREASE = "DEC"

    @property
    def direction(self) -> AdjustmentDirection:
        return AdjustmentDirection.INFLOW if self is StockAdjustmentType.INCREASE else AdjustmentDirection.OUTFLOW


_PURCHASE_ORDER_TRANSITIONS: Dict[Tuple[PurchaseOrderState, str], PurchaseOrderState] = {
    (PurchaseOrderState.PENDING, "edit"): PurchaseOrderState.PENDING,
    (PurchaseOrderState.PENDING, "cancel"): PurchaseOrderState.CANCELED,
    (PurchaseOrderState.PENDING, "receive"): PurchaseOrderState.PENDING,
    (PurchaseOrderState.PARTIAL, "receive"): PurchaseOrderState.PARTIAL,
}

_RECEIPT_TRANSITIONS: Dict[Tuple[ReceiptState, str], ReceiptState] = {
    (ReceiptState.DRAFT, "edit"): ReceiptState.DRAFT,
    (ReceiptState.DRAFT, "approve"): ReceiptState.APPROVED,
    (ReceiptState.DRAFT, "cancel"): ReceiptState.CANCELED,
}

_INVOICE_TRANSITIONS: Dict[Tuple[InvoiceState, str], InvoiceState] = {
    (InvoiceState.ISSUED, "cancel"): InvoiceState.CANCELED,
    (InvoiceState.ISSUED, "deliver"): InvoiceState.DELIVERED,
    (InvoiceState.PAID, "deliver"): InvoiceState.DELIVERED,
    (InvoiceState.APPROVED, "deliver"): InvoiceState.DELIVERED,
}

_LABELS = {
    PurchaseOrderState.PENDING: "Pendiente",
    PurchaseOrderState.PARTIAL: "Parcial",
    PurchaseOrderState.CLOSED: "Cerrada",
    PurchaseOrderState.CANCELED: "Anulada",
    ReceiptState.DRAFT: "Abierta",
    ReceiptState.APPROVED: "Aprobada",
    ReceiptState.CANCELED: "Anulada",
    InvoiceState.ISSUED: "Emitida",
    InvoiceState.CANCELED: "Anulada",
    InvoiceState.PAID: "Pagada",
    InvoiceState.APPROVED: "Aprobada",
    InvoiceState.DELIVERED: "Entregada",
}


def state_label(state) -> str:
    return _LABELS.get(state, str(state))


def _transition(table, state, event: str, document: str):
    try:
        return table[(state, event)]
    except KeyError:
        raise ConflictError(
            f"{document} en estado {state.value} ({state_label(state)}) no admite la operación '{event}'",
            details={"state": state.value, "event": event}
        )


def purchase_order_transition(state: PurchaseOrderState, event: str) -> PurchaseOrderState:
    return _transition(_PURCHASE_ORDER_TRANSITIONS, PurchaseOrderState(state), event, "La orden de compra")


def receipt_transition(state: ReceiptState, event: str) -> ReceiptState:
    return _transition(_RECEIPT_TRANSITIONS, ReceiptState(state), event, "La recepción")


def invoice_transition(state: InvoiceState, event: str) -> InvoiceState:
    return _transition(_INVOICE_TRANSITIONS, InvoiceState(state), event, "La factura")
