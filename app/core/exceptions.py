# app/core/exceptions.py
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Error de negocio del flujo de inventario, siempre con código estable"""
    status_code_default = status.HTTP_400_BAD_REQUEST
    error_code = "domain_error"

    def __init__(self, detail: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(status_code=self.status_code_default, detail=detail)
        self.details = details or {}


class ValidationError(DomainError):
    """Entrada mal formada o fuera de rango"""
    status_code_default = status.HTTP_400_BAD_REQUEST
    error_code = "validation_error"


class NotFoundError(DomainError):
    """La entidad referenciada no existe"""
    status_code_default = status.HTTP_404_NOT_FOUND
    error_code = "not_found"


class ConflictError(DomainError):
    """Transición de estado inválida o relación que bloquea la operación"""
    status_code_default = status.HTTP_409_CONFLICT
    error_code = "conflict"


class InsufficientStockError(DomainError):
    """La operación dejaría el saldo actual en negativo"""
    status_code_default = status.HTTP_409_CONFLICT
    error_code = "insufficient_stock"

    def __init__(self, shortages: List[Dict[str, Any]]):
        lines = [
            f"{s['product_id']} (saldo: {s['available']}, necesario: {s['requested']})"
            for s in shortages
        ]
        super().__init__(
            "Stock insuficiente:\n" + "\n".join(f"• {x}" for x in lines),
            details={"shortages": shortages}
        )
        self.shortages = shortages


class InfrastructureError(DomainError):
    """Fallo del almacén de datos; nunca se disfraza de error de negocio"""
    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "infrastructure_error"

    def __init__(self, detail: str = "Error de base de datos. Intente nuevamente."):
        super().__init__(detail)
