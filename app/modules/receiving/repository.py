# app/modules/receiving/repository.py
from sqlalchemy.orm import Session
from sqlalchemy import and_, desc
from typing import List, Dict, Optional
from datetime import date, datetime, time
import logging

from app.shared.database.models import PurchaseOrder, PurchaseOrderLine, Receipt, ReceiptLine

logger = logging.getLogger(__name__)

class ReceivingRepository:
    """Acceso a datos de recepciones. Nunca hace commit."""

    def __init__(self, db: Session):
        self.db = db

    def get_receipt(self, receipt_id: int, for_update: bool = False) -> Optional[Receipt]:
        query = self.db.query(Receipt).filter(Receipt.id == receipt_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_order(self, order_id: str, for_update: bool = False) -> Optional[PurchaseOrder]:
        query = self.db.query(PurchaseOrder).filter(PurchaseOrder.id == order_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_order_lines(self, order_id: str, for_update: bool = False) -> Dict[str, PurchaseOrderLine]:
        """Líneas de la orden indexadas por producto"""
        query = self.db.query(PurchaseOrderLine).filter(
            PurchaseOrderLine.purchase_order_id == order_id
        ).order_by(PurchaseOrderLine.product_id)
        if for_update:
            query = query.with_for_update()
        return {line.product_id: line for line in query.all()}

    def find_open_receipt(self, order_id: str) -> Optional[Receipt]:
        return self.db.query(Receipt).filter(
            and_(
                Receipt.purchase_order_id == order_id,
                Receipt.state == 'ABI'
            )
        ).first()

    def create_receipt(self, receipt: Receipt, lines: List[ReceiptLine]) -> Receipt:
        receipt.lines = lines
        self.db.add(receipt)
        self.db.flush()
        return receipt

    def list_receipts(
        self,
        order_id: Optional[str] = None,
        state: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> List[Receipt]:
        conditions = []
        if order_id:
            conditions.append(Receipt.purchase_order_id == order_id)
        if state:
            conditions.append(Receipt.state == state)
        if date_from:
            conditions.append(Receipt.created_at >= datetime.combine(date_from, time.min))
        if date_to:
            conditions.append(Receipt.created_at <= datetime.combine(date_to, time.max))

        return self.db.query(Receipt).filter(*conditions).order_by(
            desc(Receipt.created_at), desc(Receipt.id)
        ).all()
