# app/modules/inventory/repository.py
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc
from typing import List, Optional

from app.shared.database.models import InventoryAdjustment

class InventoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_adjustment(self, adjustment_id: int) -> Optional[InventoryAdjustment]:
        return self.db.query(InventoryAdjustment).options(
            selectinload(InventoryAdjustment.lines)
        ).filter(InventoryAdjustment.id == adjustment_id).first()

    def list_adjustments(
        self,
        direction: Optional[str] = None,
        origin: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[InventoryAdjustment]:
        conditions = []
        if direction:
            conditions.append(InventoryAdjustment.direction == direction)
        if origin:
            conditions.append(InventoryAdjustment.origin == origin)

        return self.db.query(InventoryAdjustment).options(
            selectinload(InventoryAdjustment.lines)
        ).filter(*conditions).order_by(
            desc(InventoryAdjustment.created_at), desc(InventoryAdjustment.id)
        ).offset(offset).limit(limit).all()
