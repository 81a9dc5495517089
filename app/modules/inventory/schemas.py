# app/modules/inventory/schemas.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.shared.schemas.common import BaseResponse, ORMModel, StockSnapshot

class StockAdjustRequest(BaseModel):
    """Ajuste manual de un producto (POST /productos/{id}/ajustar-stock)"""
    quantity: int = Field(..., description="Cantidad a ajustar (mayor a 0)")
    type: str = Field(..., description="INC (incremento) o DEC (decremento)")
    reason: Optional[str] = Field(None, max_length=255, description="Motivo del ajuste")

    class Config:
        json_schema_extra = {
            "example": {
                "quantity": 5,
                "type": "DEC",
                "reason": "Botellas rotas en percha"
            }
        }

class AdjustmentLineInput(BaseModel):
    product_id: str = Field(..., description="ID del producto")
    quantity: int = Field(..., description="Cantidad (mayor a 0)")

class AdjustmentCreate(BaseModel):
    """Ajuste manual de varios productos en una sola dirección"""
    reason: str = Field(..., max_length=255, description="Descripción del ajuste")
    direction: str = Field(..., description="E (entrada) o S (salida)")
    lines: List[AdjustmentLineInput] = Field(default_factory=list, description="Detalle del ajuste")

class AdjustmentLineOut(ORMModel):
    product_id: str
    quantity: int

class AdjustmentOut(ORMModel):
    id: int
    reason: str
    direction: str
    origin: str
    reference: Optional[str] = None
    line_count: int
    state: str
    employee_id: Optional[int] = None
    created_at: datetime
    lines: List[AdjustmentLineOut] = []

class AdjustmentResponse(BaseResponse):
    adjustment: AdjustmentOut
    stock: List[StockSnapshot] = []

class AdjustmentListResponse(BaseResponse):
    adjustments: List[AdjustmentOut]
    total_adjustments: int

class StockResponse(BaseResponse):
    stock: StockSnapshot
