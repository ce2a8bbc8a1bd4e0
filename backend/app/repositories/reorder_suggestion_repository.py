"""
Reorder Suggestion Repository
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy import case
from sqlalchemy.orm import Session

from app.repositories.base import BaseRepository
from app.models.product import Product
from app.models.reorder_suggestion import ReorderSuggestion

URGENCY_RANK = case(
    (ReorderSuggestion.urgency == "critical", 1),
    (ReorderSuggestion.urgency == "high", 2),
    (ReorderSuggestion.urgency == "medium", 3),
    else_=4,
)


class ReorderSuggestionRepository(BaseRepository[ReorderSuggestion]):

    def __init__(self, db: Session):
        super().__init__(ReorderSuggestion, db)

    def get_active_pending_by_product(self, product_id: int, now: datetime) -> Optional[ReorderSuggestion]:
        return (
            self.db.query(ReorderSuggestion)
            .filter(
                ReorderSuggestion.product_id == product_id,
                ReorderSuggestion.status == "pending",
                ReorderSuggestion.expires_at > now,
            )
            .order_by(ReorderSuggestion.created_at.desc(), ReorderSuggestion.id.desc())
            .first()
        )

    def list_filtered(
        self,
        now: datetime,
        status: Optional[str] = "pending",
        urgency: Optional[str] = None,
        category_id: Optional[int] = None,
        supplier_id: Optional[int] = None,
        min_confidence: Optional[float] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[ReorderSuggestion]:
        q = self.db.query(ReorderSuggestion)
        if status:
            q = q.filter(ReorderSuggestion.status == status)
        if status == "pending":
            q = q.filter(ReorderSuggestion.expires_at > now)
        if urgency and urgency != "all":
            q = q.filter(ReorderSuggestion.urgency == urgency)
        if category_id is not None:
            q = q.join(Product, Product.id == ReorderSuggestion.product_id).filter(Product.category_id == category_id)
        if supplier_id is not None:
            q = q.filter(ReorderSuggestion.supplier_id == supplier_id)
        if min_confidence is not None:
            q = q.filter(ReorderSuggestion.confidence_score >= min_confidence)
        if date_from is not None:
            q = q.filter(ReorderSuggestion.created_at >= date_from)
        if date_to is not None:
            q = q.filter(ReorderSuggestion.created_at <= date_to)
        return q.order_by(
            URGENCY_RANK,
            ReorderSuggestion.confidence_score.desc(),
            ReorderSuggestion.created_at.desc(),
        ).all()
