# app/modules/receiving/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from app.config.database import get_db
from app.core.auth.dependencies import get_warehouse_user
from app.core.auth.schemas import CurrentUser
from .service import ReceivingService
from .schemas import (
    ReceiptOpen, ReceiptAdjust, ReceiptApprove, ReceiptCancel,
    ReceiptResponse, ReceiptListResponse, ReceiptApprovalResponse
)

router = APIRouter()

@router.get("", response_model=ReceiptListResponse)
async def list_receipts(
    compra: Optional[str] = Query(None, description="Filtrar por orden de compra"),
    estado: Optional[str] = Query(None, description="ABI, APR o ANU"),
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """Listar recepciones de bodega"""
    service = ReceivingService(db)
    return await service.list_receipts(order_id=compra, state=estado)

@router.get("/buscar", response_model=ReceiptListResponse)
async def search_receipts(
    compra: Optional[str] = Query(None, description="ID de la orden de compra"),
    desde: Optional[date] = Query(None, description="Fecha inicial (AAAA-MM-DD)"),
    hasta: Optional[date] = Query(None, description="Fecha final (AAAA-MM-DD)"),
    estado: Optional[str] = Query(None, description="ABI, APR o ANU"),
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """Buscar recepciones por orden, rango de fechas y estado"""
    service = ReceivingService(db)
    return await service.search_receipts(
        order_id=compra, date_from=desde, date_to=hasta, state=estado
    )

@router.get("/{receipt_id}", response_model=ReceiptResponse)
async def get_receipt(
    receipt_id: int,
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """Obtener recepción con su detalle"""
    service = ReceivingService(db)
    return await service.get_receipt(receipt_id)

@router.post("", response_model=ReceiptResponse, status_code=201)
async def open_receipt(
    receipt_data: ReceiptOpen,
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """
    Registrar recepción de mercadería

    **Proceso:**
    - La orden debe estar PEN o PAR y sin otra recepción abierta
    - Sin detalle se propone todo lo pendiente de la orden
    - La recepción queda **ABI**: el stock no cambia hasta aprobarla
    """
    service = ReceivingService(db)
    return await service.open_receipt(receipt_data, current_user.employee_id)

@router.put("/{receipt_id}", response_model=ReceiptResponse)
async def adjust_receipt(
    receipt_id: int,
    adjust_data: ReceiptAdjust,
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """Modificar cantidades de una recepción abierta"""
    service = ReceivingService(db)
    return await service.adjust_lines(receipt_id, adjust_data.lines)

@router.post("/{receipt_id}/aprobar", response_model=ReceiptApprovalResponse)
async def approve_receipt(
    receipt_id: int,
    approve_data: Optional[ReceiptApprove] = None,
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """
    Aprobar recepción

    **En una sola transacción:**
    - Ingreso de stock y costo promedio ponderado
    - Cantidades recibidas en la orden y recálculo de su estado (PAR/CER)
    - Ajuste de inventario de ingreso con origen REC
    """
    service = ReceivingService(db)
    reason = approve_data.adjustment_reason if approve_data else None
    return await service.approve_receipt(receipt_id, current_user.employee_id, reason)

@router.post("/{receipt_id}/anular", response_model=ReceiptResponse)
async def cancel_receipt(
    receipt_id: int,
    cancel_data: Optional[ReceiptCancel] = None,
    current_user: CurrentUser = Depends(get_warehouse_user),
    db: Session = Depends(get_db)
):
    """Anular recepción abierta (sin efecto en stock)"""
    service = ReceivingService(db)
    reason = cancel_data.reason if cancel_data else None
    return await service.cancel_receipt(receipt_id, reason)
