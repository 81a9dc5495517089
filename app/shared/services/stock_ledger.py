# app/shared/services/stock_ledger.py
from typing import Any, Dict, Iterable, List, Optional, Tuple
from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from app.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from app.shared.database.models import Product, InventoryAdjustment, AdjustmentLine
from app.shared.money import round3, to_decimal
from app.shared.states import AdjustmentDirection, AdjustmentOrigin

logger = logging.getLogger(__name__)


class StockLedger:
    """
    Libro de stock por producto (campos de `producto`).

    Reglas que cumple todo mutador:
    - saldo_actual = saldo_inicial + ingresos - egresos + ajustes
    - saldo_actual nunca queda negativo: las salidas se validan TODAS antes
      de escribir la primera línea
    - todo ingreso/ajuste se escribe en la misma transacción que su registro
      en ajuste_inventario + detalle_ajuste

    Ningún método hace commit: la transacción pertenece al manager que llama.
    """

    @staticmethod
    def lock_products(db: Session, product_ids: Iterable[str]) -> Dict[str, Product]:
        """
        Bloquear filas de producto (SELECT FOR UPDATE) en orden estable.

        Raises:
            NotFoundError: Si algún producto no existe
        """
        ids = sorted(set(product_ids))
        if not ids:
            return {}

        products = db.query(Product).filter(
            Product.id.in_(ids)
        ).order_by(Product.id).with_for_update().all()

        found = {p.id: p for p in products}
        missing = [pid for pid in ids if pid not in found]
        if missing:
            raise NotFoundError(
                f"Producto(s) no encontrado(s): {', '.join(missing)}",
                details={"missing": missing}
            )
        return found

    @staticmethod
    def ensure_available(products: Dict[str, Product], requested: Dict[str, int]) -> None:
        """
        Validar que cada producto tenga saldo para la salida solicitada.

        Se revisan todas las líneas y se reporta el conjunto completo de
        faltantes en un solo error.
        """
        shortages = []
        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.current_balance < quantity:
                shortages.append({
                    "product_id": product_id,
                    "description": product.description,
                    "available": product.current_balance,
                    "requested": quantity
                })

        if shortages:
            logger.warning(f"Stock insuficiente: {shortages}")
            raise InsufficientStockError(shortages)

    # ------------------------------------------------------------------
    # Mutaciones (sobre filas ya bloqueadas)
    # ------------------------------------------------------------------

    @staticmethod
    def register_inflow(product: Product, quantity: int, unit_cost: Optional[Decimal] = None) -> None:
        """Ingreso por recepción; recalcula el costo promedio ponderado si hay costo"""
        if quantity <= 0:
            return

        if unit_cost is not None:
            balance_before = max(product.current_balance, 0)
            current_cost = to_decimal(product.average_cost or 0)
            new_balance = balance_before + quantity
            product.average_cost = round3(
                (current_cost * balance_before + to_decimal(unit_cost) * quantity) / new_balance
            )

        product.inflow += quantity
        product.current_balance += quantity

    @staticmethod
    def register_outflow(product: Product, quantity: int) -> None:
        """Egreso por venta; el llamador ya validó con ensure_available"""
        if product.current_balance < quantity:
            raise InsufficientStockError([{
                "product_id": product.id,
                "description": product.description,
                "available": product.current_balance,
                "requested": quantity
            }])
        product.outflow += quantity
        product.current_balance -= quantity

    @staticmethod
    def reverse_outflow(product: Product, quantity: int) -> None:
        """Devolver al stock un egreso previo (anulación de factura)"""
        if product.outflow < quantity:
            raise ValidationError(
                f"No se puede revertir. Egresos insuficientes para producto {product.id}"
            )
        product.outflow -= quantity
        product.current_balance += quantity

    @staticmethod
    def register_adjustment(product: Product, signed_quantity: int) -> None:
        """Ajuste manual: positivo incrementa, negativo decrementa"""
        if product.current_balance + signed_quantity < 0:
            raise InsufficientStockError([{
                "product_id": product.id,
                "description": product.description,
                "available": product.current_balance,
                "requested": -signed_quantity
            }])
        product.adjustments += signed_quantity
        product.current_balance += signed_quantity

    # ------------------------------------------------------------------
    # Registro de ajustes
    # ------------------------------------------------------------------

    @staticmethod
    def record_adjustment(
        db: Session,
        reason: str,
        direction: AdjustmentDirection,
        origin: AdjustmentOrigin,
        lines: List[Tuple[str, int]],
        employee_id: Optional[int] = None,
        reference: Optional[str] = None
    ) -> InventoryAdjustment:
        """
        Crear ajuste_inventario + detalle_ajuste en la transacción actual.

        Args:
            lines: [(product_id, cantidad > 0)]; las líneas en cero se omiten
        """
        effective = [(pid, qty) for pid, qty in lines if qty > 0]

        adjustment = InventoryAdjustment(
            reason=reason,
            direction=direction.value,
            origin=origin.value,
            reference=reference,
            line_count=len(effective),
            state='ACT',
            employee_id=employee_id
        )
        adjustment.lines = [
            AdjustmentLine(product_id=product_id, quantity=quantity)
            for product_id, quantity in effective
        ]

        db.add(adjustment)
        db.flush()

        logger.info(
            f"Ajuste #{adjustment.id} registrado - tipo {direction.value}, "
            f"origen {origin.value}, {len(effective)} producto(s)"
        )
        return adjustment

    # ------------------------------------------------------------------
    # Consultas
    # ------------------------------------------------------------------

    @staticmethod
    def check_balance_identity(product: Product) -> bool:
        return product.current_balance == product.expected_balance and product.current_balance >= 0

    @staticmethod
    def snapshot(product: Product) -> Dict[str, Any]:
        return {
            "product_id": product.id,
            "description": product.description,
            "initial_balance": product.initial_balance,
            "inflow": product.inflow,
            "outflow": product.outflow,
            "adjustments": product.adjustments,
            "current_balance": product.current_balance,
            "average_cost": product.average_cost,
            "state": product.state,
            "consistent": StockLedger.check_balance_identity(product)
        }
