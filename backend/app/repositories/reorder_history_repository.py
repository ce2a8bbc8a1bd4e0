"""
Reorder History Repository
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from app.repositories.base import BaseRepository
from app.models.reorder_history import ReorderHistory


class ReorderHistoryRepository(BaseRepository[ReorderHistory]):

    def __init__(self, db: Session):
        super().__init__(ReorderHistory, db)

    def list_filtered(
        self,
        product_id: Optional[int] = None,
        suggestion_id: Optional[int] = None,
        action_taken: Optional[str] = None,
        limit: int = 100,
    ) -> List[ReorderHistory]:
        q = self.db.query(ReorderHistory)
        if product_id is not None:
            q = q.filter(ReorderHistory.product_id == product_id)
        if suggestion_id is not None:
            q = q.filter(ReorderHistory.suggestion_id == suggestion_id)
        if action_taken:
            q = q.filter(ReorderHistory.action_taken == action_taken)
        return q.order_by(ReorderHistory.created_at.desc(), ReorderHistory.id.desc()).limit(limit).all()
