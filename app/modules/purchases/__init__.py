# app/modules/purchases/__init__.py
"""
Módulo de Compras - Órdenes de compra a proveedores

- Creación con validación de proveedor, productos y rangos
- Modificación del detalle mientras la orden esté PEN y sin recepciones
- Anulación sin efecto en stock
- Búsqueda por proveedor, fechas y estado

El estado PAR/CER lo recalcula el módulo de recepciones al aprobar.
"""

from .router import router
from .service import PurchaseOrderService, resolve_order_state
from .repository import PurchaseOrderRepository

__all__ = [
    "router",
    "PurchaseOrderService",
    "PurchaseOrderRepository",
    "resolve_order_state"
]
