from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    Numeric,
    ForeignKey,
    UniqueConstraint,
    func,
)
from app.database import Base


class DemandPattern(Base):
    __tablename__ = "demand_patterns"
    __table_args__ = (
        UniqueConstraint("product_id", "period_start", "period_end", name="uq_demand_patterns_product_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    avg_daily_demand = Column(Numeric(12, 4), nullable=False)
    peak_demand = Column(Integer, nullable=False)
    demand_variance = Column(Numeric(14, 4), nullable=False)
    calculated_at = Column(DateTime, default=func.now(), onupdate=func.now())
