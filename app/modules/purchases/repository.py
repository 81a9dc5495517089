# app/modules/purchases/repository.py
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc, func
from typing import List, Dict, Any, Optional
from datetime import date, datetime, time
import logging

from app.shared.database.models import PurchaseOrder, PurchaseOrderLine, Receipt

logger = logging.getLogger(__name__)

class PurchaseOrderRepository:
    """Acceso a datos de órdenes de compra. Nunca hace commit."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, order_id: str, for_update: bool = False) -> Optional[PurchaseOrder]:
        query = self.db.query(PurchaseOrder).filter(PurchaseOrder.id == order_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def count_receipts(self, order_id: str) -> int:
        """Recepciones en cualquier estado que referencian la orden"""
        return self.db.query(func.count(Receipt.id)).filter(
            Receipt.purchase_order_id == order_id
        ).scalar() or 0

    def create(self, order_id: str, supplier_id: str, lines: List[Dict[str, Any]], total) -> PurchaseOrder:
        order = PurchaseOrder(
            id=order_id,
            supplier_id=supplier_id,
            subtotal=total,
            total=total,
            state='PEN',
            ordered_at=datetime.now()
        )
        order.lines = [PurchaseOrderLine(**line, quantity_received=0) for line in lines]

        self.db.add(order)
        self.db.flush()
        return order

    def replace_lines(self, order: PurchaseOrder, lines: List[Dict[str, Any]], total) -> PurchaseOrder:
        """Borrar el detalle completo e insertar el nuevo"""
        for line in list(order.lines):
            self.db.delete(line)
        self.db.flush()
        self.db.expire(order, ['lines'])

        for line in lines:
            self.db.add(PurchaseOrderLine(purchase_order_id=order.id, quantity_received=0, **line))

        order.subtotal = total
        order.total = total
        order.updated_at = datetime.now()
        self.db.flush()
        self.db.refresh(order)
        return order

    def list_orders(self, limit: int = 100, offset: int = 0) -> List[PurchaseOrder]:
        return self.db.query(PurchaseOrder).options(
            selectinload(PurchaseOrder.receipts)
        ).order_by(desc(PurchaseOrder.ordered_at), desc(PurchaseOrder.id)).offset(offset).limit(limit).all()

    def search(
        self,
        supplier_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        state: Optional[str] = None
    ) -> List[PurchaseOrder]:
        conditions = []
        if supplier_id:
            conditions.append(PurchaseOrder.supplier_id == supplier_id)
        if date_from:
            conditions.append(PurchaseOrder.ordered_at >= datetime.combine(date_from, time.min))
        if date_to:
            conditions.append(PurchaseOrder.ordered_at <= datetime.combine(date_to, time.max))
        if state:
            conditions.append(PurchaseOrder.state == state)

        return self.db.query(PurchaseOrder).options(
            selectinload(PurchaseOrder.receipts)
        ).filter(*conditions).order_by(desc(PurchaseOrder.ordered_at), desc(PurchaseOrder.id)).all()
