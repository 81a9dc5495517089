# app/modules/purchases/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from app.config.database import get_db
from app.core.auth.dependencies import require_roles
from app.core.auth.schemas import ADMIN, WAREHOUSE_KEEPER
from .service import PurchaseOrderService
from .schemas import (
    PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderCancel,
    PurchaseOrderResponse, PurchaseOrderListResponse
)

router = APIRouter()

@router.post("", response_model=PurchaseOrderResponse, status_code=201)
async def create_purchase_order(
    order_data: PurchaseOrderCreate,
    current_user = Depends(require_roles([ADMIN, WAREHOUSE_KEEPER])),
    db: Session = Depends(get_db)
):
    """
    Crear orden de compra a un proveedor

    **Validaciones:**
    - Proveedor existente y activo
    - Productos existentes, activos y sin repetir
    - Cantidad 1 - 999,999 y costo unitario hasta 999,999.999

    La orden nace en estado **PEN** con numeración OC-AAAA-NNNNNN.
    """
    service = PurchaseOrderService(db)
    return await service.create_order(order_data)

@router.get("", response_model=PurchaseOrderListResponse)
async def list_purchase_orders(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user = Depends(require_roles([ADMIN, WAREHOUSE_KEEPER])),
    db: Session = Depends(get_db)
):
    """Listar órdenes de compra (más recientes primero)"""
    service = PurchaseOrderService(db)
    return await service.list_orders(limit=limit, offset=offset)

@router.get("/buscar", response_model=PurchaseOrderListResponse)
async def search_purchase_orders(
    proveedor: Optional[str] = Query(None, description="ID del proveedor"),
    desde: Optional[date] = Query(None, description="Fecha inicial (AAAA-MM-DD)"),
    hasta: Optional[date] = Query(None, description="Fecha final (AAAA-MM-DD)"),
    estado: Optional[str] = Query(None, description="PEN, PAR, CER o ANU"),
    current_user = Depends(require_roles([ADMIN, WAREHOUSE_KEEPER])),
    db: Session = Depends(get_db)
):
    """Buscar órdenes por proveedor, rango de fechas y estado"""
    service = PurchaseOrderService(db)
    return await service.search_orders(
        supplier_id=proveedor, date_from=desde, date_to=hasta, state=estado
    )

@router.get("/{order_id}", response_model=PurchaseOrderResponse)
async def get_purchase_order(
    order_id: str,
    current_user = Depends(require_roles([ADMIN, WAREHOUSE_KEEPER])),
    db: Session = Depends(get_db)
):
    """Obtener orden de compra con su detalle y cantidades recibidas"""
    service = PurchaseOrderService(db)
    return await service.get_order(order_id)

@router.put("/{order_id}", response_model=PurchaseOrderResponse)
async def update_purchase_order(
    order_id: str,
    order_data: PurchaseOrderUpdate,
    current_user = Depends(require_roles([ADMIN])),
    db: Session = Depends(get_db)
):
    """
    Reemplazar el detalle de una orden

    Sólo órdenes en estado **PEN** y sin recepciones registradas.
    """
    service = PurchaseOrderService(db)
    return await service.update_order(order_id, order_data)

@router.post("/{order_id}/anular", response_model=PurchaseOrderResponse)
async def cancel_purchase_order(
    order_id: str,
    cancel_data: Optional[PurchaseOrderCancel] = None,
    current_user = Depends(require_roles([ADMIN])),
    db: Session = Depends(get_db)
):
    """Anular una orden sin recepciones (no afecta stock)"""
    service = PurchaseOrderService(db)
    reason = cancel_data.reason if cancel_data else None
    return await service.cancel_order(order_id, reason)
