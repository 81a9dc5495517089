# app/modules/invoices/repository.py
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc, or_
from typing import List, Optional
from datetime import date, datetime, time
import logging

from app.shared.database.models import Invoice, InvoiceLine, Customer

logger = logging.getLogger(__name__)

class InvoiceRepository:
    """Acceso a datos de facturas. Nunca hace commit."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, invoice_id: str, for_update: bool = False) -> Optional[Invoice]:
        query = self.db.query(Invoice).filter(Invoice.id == invoice_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def create(self, invoice: Invoice, lines: List[InvoiceLine]) -> Invoice:
        invoice.lines = lines
        self.db.add(invoice)
        self.db.flush()
        return invoice

    def search(
        self,
        invoice_id: Optional[str] = None,
        customer: Optional[str] = None,
        customer_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        state: Optional[str] = None,
        channel: Optional[str] = None,
        employee_id: Optional[int] = None,
        pending_pickup: bool = False,
        limit: int = 100,
        offset: int = 0
    ) -> List[Invoice]:
        query = self.db.query(Invoice).options(
            selectinload(Invoice.lines),
            selectinload(Invoice.customer)
        )

        if invoice_id:
            query = query.filter(Invoice.id == invoice_id)
        if customer_id is not None:
            query = query.filter(Invoice.customer_id == customer_id)
        if customer:
            pattern = f"%{customer}%"
            query = query.join(Customer, Invoice.customer_id == Customer.id).filter(
                or_(
                    Customer.first_name.ilike(pattern),
                    Customer.last_name.ilike(pattern),
                    Customer.document.like(pattern)
                )
            )
        if date_from:
            query = query.filter(Invoice.issued_at >= datetime.combine(date_from, time.min))
        if date_to:
            query = query.filter(Invoice.issued_at <= datetime.combine(date_to, time.max))
        if state:
            query = query.filter(Invoice.state == state)
        if channel:
            query = query.filter(Invoice.channel == channel)
        if employee_id is not None:
            query = query.filter(Invoice.employee_id == employee_id)
        if pending_pickup:
            query = query.filter(
                Invoice.channel == 'WEB',
                Invoice.state.in_(['EMI', 'PAG', 'APR']),
                Invoice.picked_up_at.is_(None)
            )

        return query.order_by(desc(Invoice.issued_at), desc(Invoice.id)).offset(offset).limit(limit).all()
