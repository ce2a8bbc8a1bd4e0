"""
Purchase Order Repository
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from app.repositories.base import BaseRepository
from app.models.purchase_order import PurchaseOrder


class PurchaseOrderRepository(BaseRepository[PurchaseOrder]):

    def __init__(self, db: Session):
        super().__init__(PurchaseOrder, db)

    def list_auto_generated(
        self,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[PurchaseOrder]:
        q = self.db.query(PurchaseOrder).filter(PurchaseOrder.auto_generated.is_(True))
        if status:
            q = q.filter(PurchaseOrder.status == status)
        if date_from is not None:
            q = q.filter(PurchaseOrder.created_at >= date_from)
        if date_to is not None:
            q = q.filter(PurchaseOrder.created_at <= date_to)
        return q.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()
