# app/modules/inventory/__init__.py
"""
Módulo de Inventario - Ajustes y consulta del libro de stock

- Ajuste puntual INC/DEC de un producto
- Ajustes manuales de varios productos (E/S)
- Historial de ajustes (manuales, de recepción y de anulación de factura)
"""

from .router import router, product_router
from .service import InventoryService
from .repository import InventoryRepository

__all__ = [
    "router",
    "product_router",
    "InventoryService",
    "InventoryRepository"
]
