# app/modules/inventory/service.py
from sqlalchemy.orm import Session
from typing import Optional, Dict, List
import logging

from app.core.exceptions import ValidationError, NotFoundError
from app.shared.database.unit_of_work import unit_of_work
from app.shared.schemas.common import StockSnapshot
from app.shared.services.catalog_service import CatalogService
from app.shared.services.stock_ledger import StockLedger
from app.shared.states import (
    AdjustmentDirection, AdjustmentOrigin, StockAdjustmentType
)
from .repository import InventoryRepository
from .schemas import (
    StockAdjustRequest, AdjustmentCreate, AdjustmentLineInput,
    AdjustmentResponse, AdjustmentListResponse, AdjustmentOut, StockResponse
)

logger = logging.getLogger(__name__)

DEFAULT_MANUAL_REASON = "Ajuste manual de inventario"

class InventoryService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = InventoryRepository(db)
        self.catalog = CatalogService(db)

    async def adjust_stock(
        self,
        product_id: str,
        adjust_data: StockAdjustRequest,
        employee_id: Optional[int] = None
    ) -> AdjustmentResponse:
        """
        Ajuste manual de stock de un producto.

        INC suma y DEC resta la cantidad en `ajustes` y `saldo_actual`;
        un DEC mayor al saldo se rechaza sin tocar nada.
        """
        if adjust_data.quantity is None or adjust_data.quantity <= 0:
            raise ValidationError("La cantidad debe ser mayor a 0")

        try:
            adjustment_type = StockAdjustmentType((adjust_data.type or "").upper())
        except ValueError:
            raise ValidationError("Tipo debe ser INC (incremento) o DEC (decremento)")

        signed_quantity = adjust_data.quantity if adjustment_type is StockAdjustmentType.INCREASE else -adjust_data.quantity

        with unit_of_work(self.db, f"Ajuste de stock de {product_id}"):
            product = StockLedger.lock_products(self.db, [product_id])[product_id]
            StockLedger.register_adjustment(product, signed_quantity)

            adjustment = StockLedger.record_adjustment(
                self.db,
                reason=(adjust_data.reason or "").strip() or DEFAULT_MANUAL_REASON,
                direction=adjustment_type.direction,
                origin=AdjustmentOrigin.MANUAL,
                lines=[(product_id, adjust_data.quantity)],
                employee_id=employee_id
            )
            snapshot = StockSnapshot(**StockLedger.snapshot(product))

            logger.info(
                f"Stock de {product_id} ajustado {signed_quantity:+d} - "
                f"saldo actual {product.current_balance}"
            )

        return AdjustmentResponse(
            success=True,
            message="Stock ajustado correctamente",
            adjustment=AdjustmentOut.model_validate(adjustment),
            stock=[snapshot]
        )

    async def create_adjustment(
        self,
        adjustment_data: AdjustmentCreate,
        employee_id: Optional[int] = None
    ) -> AdjustmentResponse:
        """
        Ajuste manual de varios productos (todo o nada).

        En salidas se valida el saldo de TODAS las líneas antes de escribir.
        """
        reason = (adjustment_data.reason or "").strip()
        if not reason:
            raise ValidationError("La descripción del ajuste es requerida")

        try:
            direction = AdjustmentDirection((adjustment_data.direction or "").upper())
        except ValueError:
            raise ValidationError("Tipo de ajuste debe ser E (entrada) o S (salida)")

        quantities = self._validate_lines(adjustment_data.lines)

        with unit_of_work(self.db, "Creación de ajuste de inventario"):
            products = StockLedger.lock_products(self.db, quantities.keys())

            if direction is AdjustmentDirection.OUTFLOW:
                StockLedger.ensure_available(products, quantities)

            sign = 1 if direction is AdjustmentDirection.INFLOW else -1
            for product_id, quantity in quantities.items():
                StockLedger.register_adjustment(products[product_id], sign * quantity)

            adjustment = StockLedger.record_adjustment(
                self.db,
                reason=reason,
                direction=direction,
                origin=AdjustmentOrigin.MANUAL,
                lines=list(quantities.items()),
                employee_id=employee_id
            )
            stock = [StockSnapshot(**StockLedger.snapshot(products[pid])) for pid in sorted(quantities)]

        return AdjustmentResponse(
            success=True,
            message=f"Ajuste #{adjustment.id} registrado con {adjustment.line_count} producto(s)",
            adjustment=AdjustmentOut.model_validate(adjustment),
            stock=stock
        )

    async def get_adjustment(self, adjustment_id: int) -> AdjustmentResponse:
        adjustment = self.repository.get_adjustment(adjustment_id)
        if not adjustment:
            raise NotFoundError(f"Ajuste #{adjustment_id} no encontrado")

        return AdjustmentResponse(
            success=True,
            message="Ajuste obtenido",
            adjustment=AdjustmentOut.model_validate(adjustment)
        )

    async def list_adjustments(
        self,
        direction: Optional[str] = None,
        origin: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> AdjustmentListResponse:
        if direction:
            try:
                direction = AdjustmentDirection(direction.upper()).value
            except ValueError:
                raise ValidationError("Tipo de ajuste debe ser E (entrada) o S (salida)")
        if origin:
            try:
                origin = AdjustmentOrigin(origin.upper()).value
            except ValueError:
                raise ValidationError(
                    f"Origen inválido: {origin}. Valores permitidos: "
                    f"{', '.join(o.value for o in AdjustmentOrigin)}"
                )

        adjustments = self.repository.list_adjustments(direction, origin, limit, offset)
        return AdjustmentListResponse(
            success=True,
            message=f"{len(adjustments)} ajuste(s)",
            adjustments=[AdjustmentOut.model_validate(a) for a in adjustments],
            total_adjustments=len(adjustments)
        )

    async def get_stock(self, product_id: str) -> StockResponse:
        """Consultar el libro de stock de un producto"""
        product = self.catalog.find_product(product_id)
        if not product:
            raise NotFoundError("Producto no encontrado")

        snapshot = StockLedger.snapshot(product)
        if not snapshot["consistent"]:
            logger.error(
                f"Libro de stock inconsistente para {product_id}: "
                f"saldo {product.current_balance}, esperado {product.expected_balance}"
            )

        return StockResponse(
            success=True,
            message="Stock obtenido",
            stock=StockSnapshot(**snapshot)
        )

    def _validate_lines(self, lines: List[AdjustmentLineInput]) -> Dict[str, int]:
        if not lines:
            raise ValidationError("El ajuste debe tener al menos un producto")

        quantities = {}
        for index, line in enumerate(lines, start=1):
            product_id = line.product_id.strip()
            if product_id in quantities:
                raise ValidationError(f"Producto duplicado en el ajuste: {product_id}")
            if line.quantity is None or line.quantity <= 0:
                raise ValidationError(
                    f"Línea {index}: la cantidad debe ser mayor a 0",
                    details={"line": index, "product_id": product_id}
                )
            quantities[product_id] = line.quantity
        return quantities
