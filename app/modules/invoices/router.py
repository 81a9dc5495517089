# app/modules/invoices/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from app.config.database import get_db
from app.core.auth.dependencies import require_roles, get_cashier_user, get_current_user
from app.core.auth.schemas import CurrentUser, ADMIN, CASHIER
from .service import InvoiceService
from .schemas import (
    InvoiceCreate, InvoiceCancel, InvoiceResponse, InvoiceListResponse, InvoicePrintResponse
)

router = APIRouter()

@router.post("", response_model=InvoiceResponse, status_code=201)
async def create_invoice(
    invoice_data: InvoiceCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Emitir factura

    **Canal:**
    - POS: la emite un empleado (detalle directo o carrito)
    - WEB: checkout del cliente desde su carrito

    **Validaciones:**
    - Cliente, método de pago e IVA vigente
    - Stock suficiente para todas las líneas (nada se guarda si falta alguna)
    """
    service = InvoiceService(db)
    return await service.create_invoice(invoice_data, current_user.employee_id, current_user.user_id)

@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    id: Optional[str] = Query(None, description="ID exacto F-AAAA-NNNNNN"),
    cliente: Optional[str] = Query(None, description="Nombre, apellido o cédula/RUC"),
    id_cliente: Optional[int] = Query(None, description="ID del cliente"),
    desde: Optional[date] = Query(None, description="Fecha inicial (AAAA-MM-DD)"),
    hasta: Optional[date] = Query(None, description="Fecha final (AAAA-MM-DD)"),
    estado: Optional[str] = Query(None, description="EMI, ANU, PAG, APR o ENT"),
    canal: Optional[str] = Query(None, description="POS o WEB"),
    empleado: Optional[int] = Query(None, description="ID del empleado"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(get_cashier_user),
    db: Session = Depends(get_db)
):
    """Listar y buscar facturas"""
    service = InvoiceService(db)
    return await service.list_invoices(
        invoice_id=id, customer=cliente, customer_id=id_cliente,
        date_from=desde, date_to=hasta, state=estado, channel=canal,
        employee_id=empleado, limit=limit, offset=offset
    )

@router.get("/pedidos-retiro", response_model=InvoiceListResponse)
async def list_pending_pickups(
    current_user: CurrentUser = Depends(get_cashier_user),
    db: Session = Depends(get_db)
):
    """Pedidos del e-commerce pendientes de retiro en tienda"""
    service = InvoiceService(db)
    return await service.list_invoices(pending_pickup=True)

@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str,
    current_user: CurrentUser = Depends(get_cashier_user),
    db: Session = Depends(get_db)
):
    """Obtener factura con su detalle"""
    service = InvoiceService(db)
    return await service.get_invoice(invoice_id)

@router.get("/{invoice_id}/imprimir", response_model=InvoicePrintResponse)
async def get_invoice_print_data(
    invoice_id: str,
    current_user: CurrentUser = Depends(get_cashier_user),
    db: Session = Depends(get_db)
):
    """Datos de impresión (marca de agua ANULADA si corresponde)"""
    service = InvoiceService(db)
    return await service.get_print_data(invoice_id)

@router.post("/{invoice_id}/anular", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: str,
    cancel_data: Optional[InvoiceCancel] = None,
    current_user: CurrentUser = Depends(require_roles([ADMIN, CASHIER])),
    db: Session = Depends(get_db)
):
    """
    Anular factura emitida

    Sólo facturas **EMI**. Los productos vuelven al stock con un ajuste
    de entrada (origen FAC).
    """
    service = InvoiceService(db)
    reason = cancel_data.reason if cancel_data else None
    return await service.cancel_invoice(invoice_id, reason, current_user.employee_id)

@router.post("/{invoice_id}/retirar", response_model=InvoiceResponse)
async def mark_invoice_picked_up(
    invoice_id: str,
    current_user: CurrentUser = Depends(get_cashier_user),
    db: Session = Depends(get_db)
):
    """Marcar pedido del e-commerce como retirado"""
    service = InvoiceService(db)
    return await service.mark_picked_up(invoice_id)
