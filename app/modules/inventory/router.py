# app/modules/inventory/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from app.config.database import get_db
from app.core.auth.dependencies import require_roles, get_warehouse_user
from app.core.auth.schemas import CurrentUser, ADMIN, WAREHOUSE_KEEPER, CASHIER
from .service import InventoryService
from .schemas import (
    StockAdjustRequest, AdjustmentCreate,
    AdjustmentResponse, AdjustmentListResponse, StockResponse
)

router = APIRouter()
product_router = APIRouter()

# ==================== AJUSTES (/inventario) ====================

@router.post("/ajustes", response_model=AdjustmentResponse, status_code=201)
async def create_adjustment(
    adjustment_data: AdjustmentCreate,
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """
    Crear ajuste manual de varios productos

    **Reglas:**
    - Descripción requerida, tipo E (entrada) o S (salida)
    - Productos sin repetir y cantidades mayores a 0
    - En salidas se valida el saldo de todas las líneas antes de aplicar
    """
    service = InventoryService(db)
    return await service.create_adjustment(adjustment_data, current_user.employee_id)

@router.get("/ajustes", response_model=AdjustmentListResponse)
async def list_adjustments(
    tipo: Optional[str] = Query(None, description="E o S"),
    origen: Optional[str] = Query(None, description="MAN, REC o FAC"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """Listar ajustes de inventario"""
    service = InventoryService(db)
    return await service.list_adjustments(direction=tipo, origin=origen, limit=limit, offset=offset)

@router.get("/ajustes/{adjustment_id}", response_model=AdjustmentResponse)
async def get_adjustment(
    adjustment_id: int,
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """Obtener ajuste con su detalle"""
    service = InventoryService(db)
    return await service.get_adjustment(adjustment_id)

# ==================== STOCK POR PRODUCTO (/productos) ====================

@product_router.post("/{product_id}/ajustar-stock", response_model=AdjustmentResponse)
async def adjust_product_stock(
    product_id: str,
    adjust_data: StockAdjustRequest,
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """
    Ajustar stock de un producto

    - **INC**: incrementa ajustes y saldo actual
    - **DEC**: decrementa; no se permite dejar saldo negativo
    """
    service = InventoryService(db)
    return await service.adjust_stock(product_id, adjust_data, current_user.employee_id)

@product_router.get("/{product_id}/stock", response_model=StockResponse)
async def get_product_stock(
    product_id: str,
    current_user: CurrentUser = Depends(require_roles([ADMIN, WAREHOUSE_KEEPER, CASHIER])),
    db: Session = Depends(get_db)
):
    """Consultar saldo inicial, ingresos, egresos, ajustes y saldo actual"""
    service = InventoryService(db)
    return await service.get_stock(product_id)
