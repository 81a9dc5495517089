# app/modules/purchases/schemas.py
from pydantic import BaseModel, Field, validator
from typing import Optional, List
from decimal import Decimal
from datetime import datetime
from app.shared.schemas.common import BaseResponse, ORMModel

class PurchaseOrderLineInput(BaseModel):
    product_id: str = Field(..., description="ID del producto")
    quantity: int = Field(..., description="Cantidad solicitada (1 - 999,999)")
    unit_cost: Decimal = Field(..., description="Costo unitario (máximo 999,999.999)")

    @validator('product_id')
    def strip_product_id(cls, v):
        return v.strip()

class PurchaseOrderCreate(BaseModel):
    supplier_id: str = Field(..., description="ID (RUC/cédula) del proveedor")
    lines: List[PurchaseOrderLineInput] = Field(default_factory=list, description="Detalle de productos")

    @validator('supplier_id')
    def strip_supplier_id(cls, v):
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "supplier_id": "1790012345001",
                "lines": [
                    {"product_id": "P001", "quantity": 10, "unit_cost": "5.00"},
                    {"product_id": "P002", "quantity": 3, "unit_cost": "12.50"}
                ]
            }
        }

class PurchaseOrderUpdate(BaseModel):
    lines: List[PurchaseOrderLineInput] = Field(default_factory=list, description="Nuevo detalle completo")

class PurchaseOrderCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, description="Motivo de anulación")

class SupplierInfo(ORMModel):
    id: str
    business_name: str
    state: str

class PurchaseOrderLineOut(ORMModel):
    product_id: str
    quantity: int
    unit_cost: Decimal
    subtotal: Decimal
    quantity_received: int
    pending_quantity: int

class PurchaseOrderOut(ORMModel):
    id: str
    supplier_id: str
    subtotal: Decimal
    total: Decimal
    state: str
    ordered_at: datetime
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    receipt_count: int = 0
    supplier: Optional[SupplierInfo] = None
    lines: List[PurchaseOrderLineOut] = []

class PurchaseOrderSummary(ORMModel):
    id: str
    supplier_id: str
    total: Decimal
    state: str
    ordered_at: datetime
    receipt_count: int = 0

class PurchaseOrderResponse(BaseResponse):
    order: PurchaseOrderOut

class PurchaseOrderListResponse(BaseResponse):
    orders: List[PurchaseOrderSummary]
    total_orders: int
