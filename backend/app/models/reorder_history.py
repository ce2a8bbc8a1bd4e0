from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Text,
    Numeric,
    ForeignKey,
    CheckConstraint,
    Index,
    func,
)
from app.database import Base


class ReorderHistory(Base):
    """Append-only audit of suggestion dispositions; only outcome columns change later."""

    __tablename__ = "reorder_history"
    __table_args__ = (
        CheckConstraint(
            "action_taken IN ('approved', 'rejected', 'modified', 'auto_ordered')",
            name="ck_reorder_history_action",
        ),
        CheckConstraint(
            "accuracy_score IS NULL OR (accuracy_score >= 0 AND accuracy_score <= 100)",
            name="ck_reorder_history_accuracy_range",
        ),
        Index("ix_reorder_history_product_created", "product_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    suggestion_id = Column(Integer, ForeignKey("reorder_suggestions.id"), nullable=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    suggested_quantity = Column(Integer, nullable=False)
    actual_quantity_ordered = Column(Integer, nullable=True)
    suggested_cost = Column(Numeric(14, 2), nullable=False)
    actual_cost = Column(Numeric(14, 2), nullable=True)
    action_taken = Column(String(20), nullable=False)
    action_reason = Column(Text, nullable=True)
    stockout_occurred = Column(Boolean, nullable=False, default=False)
    overstock_occurred = Column(Boolean, nullable=False, default=False)
    accuracy_score = Column(Numeric(5, 2), nullable=True)
    user_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    outcome_recorded_at = Column(DateTime, nullable=True)
