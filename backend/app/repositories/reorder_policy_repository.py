"""
Reorder Policy Repository
"""
from typing import List, Optional
from sqlalchemy import case
from sqlalchemy.orm import Session

from app.repositories.base import BaseRepository
from app.models.reorder_policy import ReorderPolicy

SCOPE_RANK = case(
    (ReorderPolicy.scope_type == "product", 1),
    (ReorderPolicy.scope_type == "category", 2),
    (ReorderPolicy.scope_type == "supplier", 3),
    else_=4,
)


class ReorderPolicyRepository(BaseRepository[ReorderPolicy]):

    def __init__(self, db: Session):
        super().__init__(ReorderPolicy, db)

    def list_filtered(self, active_only: bool = True) -> List[ReorderPolicy]:
        q = self.db.query(ReorderPolicy)
        if active_only:
            q = q.filter(ReorderPolicy.is_active.is_(True))
        return q.order_by(SCOPE_RANK, ReorderPolicy.created_at.desc(), ReorderPolicy.id.desc()).all()

    def get_active_for_scope(self, scope_type: str, scope_id: Optional[int]) -> List[ReorderPolicy]:
        q = self.db.query(ReorderPolicy).filter(
            ReorderPolicy.scope_type == scope_type,
            ReorderPolicy.is_active.is_(True),
        )
        if scope_id is None:
            q = q.filter(ReorderPolicy.scope_id.is_(None))
        else:
            q = q.filter(ReorderPolicy.scope_id == scope_id)
        return q.all()
