from sqlalchemy import Column, Integer, DateTime, ForeignKey, CheckConstraint, Index
from app.database import Base


class DemandSampleRecord(Base):
    """Time-stamped consumption record sourced from completed sales orders."""

    __tablename__ = "demand_samples"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_demand_samples_quantity_non_negative"),
        Index("ix_demand_samples_product_occurred", "product_id", "occurred_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    occurred_at = Column(DateTime, nullable=False)
    quantity = Column(Integer, nullable=False)
