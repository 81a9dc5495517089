# app/modules/invoices/__init__.py
"""
Módulo de Facturación - POS y e-commerce

- Emisión con numeración F-AAAA-NNNNNN por año
- Validación de stock con filas bloqueadas y egreso en la misma transacción
- Anulación con devolución al stock
- Datos de impresión y retiro de pedidos web
"""

from .router import router
from .service import InvoiceService
from .repository import InvoiceRepository

__all__ = [
    "router",
    "InvoiceService",
    "InvoiceRepository"
]
