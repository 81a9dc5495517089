# app/modules/receiving/__init__.py
"""
Módulo de Bodega - Recepciones de mercadería

Flujo: ABI (abierta) -> APR (aprobada) | ANU (anulada)
- La apertura sólo registra cantidades físicas contra la orden
- La aprobación mueve stock, costo promedio, cantidades recibidas y
  estado de la orden en una sola transacción

Arquitectura:
- router.py: Endpoints /bodega/recepciones
- service.py: Máquina de estados y aprobación
- repository.py: Acceso a datos con bloqueo de filas
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import ReceivingService
from .repository import ReceivingRepository

__all__ = [
    "router",
    "ReceivingService",
    "ReceivingRepository"
]
