# app/shared/schemas/common.py
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime
from decimal import Decimal

class BaseResponse(BaseModel):
    success: bool
    message: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)

class ErrorResponse(BaseResponse):
    success: bool = False
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

class ORMModel(BaseModel):
    """Base para schemas que se construyen desde modelos SQLAlchemy"""
    class Config:
        from_attributes = True

class StockSnapshot(BaseModel):
    """Campos del libro de stock de un producto"""
    product_id: str
    description: str
    initial_balance: int
    inflow: int
    outflow: int
    adjustments: int
    current_balance: int
    average_cost: Decimal
    state: str
    consistent: bool
