"""
Demand Pattern Repository
"""
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session

from app.repositories.base import BaseRepository
from app.models.demand_pattern import DemandPattern


class DemandPatternRepository(BaseRepository[DemandPattern]):

    def __init__(self, db: Session):
        super().__init__(DemandPattern, db)

    def get_for_period(self, product_id: int, period_start: date, period_end: date) -> Optional[DemandPattern]:
        return (
            self.db.query(DemandPattern)
            .filter(
                DemandPattern.product_id == product_id,
                DemandPattern.period_start == period_start,
                DemandPattern.period_end == period_end,
            )
            .first()
        )

    def list_by_product(self, product_id: int) -> List[DemandPattern]:
        return (
            self.db.query(DemandPattern)
            .filter(DemandPattern.product_id == product_id)
            .order_by(DemandPattern.period_start)
            .all()
        )
