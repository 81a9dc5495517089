# app/modules/receiving/schemas.py
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from app.shared.schemas.common import BaseResponse, ORMModel, StockSnapshot

class ReceiptLineInput(BaseModel):
    product_id: str = Field(..., description="ID del producto de la orden")
    quantity_received: int = Field(..., description="Cantidad física recibida")

class ReceiptOpen(BaseModel):
    purchase_order_id: str = Field(..., description="Orden de compra a recibir")
    notes: Optional[str] = Field(None, max_length=1000, description="Observaciones")
    lines: Optional[List[ReceiptLineInput]] = Field(
        None, description="Si se omite, se propone todo lo pendiente de la orden"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "purchase_order_id": "OC-2025-000001",
                "notes": "Llegó en dos pallets",
                "lines": [{"product_id": "P001", "quantity_received": 4}]
            }
        }

class ReceiptAdjust(BaseModel):
    lines: List[ReceiptLineInput] = Field(default_factory=list, description="Cantidades a sobrescribir")

class ReceiptApprove(BaseModel):
    adjustment_reason: Optional[str] = Field(None, max_length=255, description="Motivo del ajuste de ingreso")

class ReceiptCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, description="Motivo de anulación")

class ReceiptLineOut(ORMModel):
    product_id: str
    expected_quantity: int
    quantity_received: int

class ReceiptOut(ORMModel):
    id: int
    purchase_order_id: str
    employee_id: Optional[int] = None
    state: str
    notes: Optional[str] = None
    created_at: datetime
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    adjustment_id: Optional[int] = None
    lines: List[ReceiptLineOut] = []

class ReceiptResponse(BaseResponse):
    receipt: ReceiptOut

class ReceiptListResponse(BaseResponse):
    receipts: List[ReceiptOut]
    total_receipts: int

class ReceiptApprovalResponse(ReceiptResponse):
    order_state: str
    adjustment_id: int
    stock: List[StockSnapshot]
    summary: Dict[str, Any] = {}
