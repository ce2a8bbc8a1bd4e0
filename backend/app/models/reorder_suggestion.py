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


class ReorderSuggestion(Base):
    __tablename__ = "reorder_suggestions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'ordered')",
            name="ck_reorder_suggestions_status",
        ),
        CheckConstraint(
            "urgency IN ('critical', 'high', 'medium', 'low')",
            name="ck_reorder_suggestions_urgency",
        ),
        CheckConstraint("suggested_quantity >= 0", name="ck_reorder_suggestions_quantity_non_negative"),
        CheckConstraint("estimated_cost >= 0", name="ck_reorder_suggestions_cost_non_negative"),
        CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 100",
            name="ck_reorder_suggestions_confidence_range",
        ),
        Index("ix_reorder_suggestions_product_status", "product_id", "status"),
        Index("ix_reorder_suggestions_status_expires", "status", "expires_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True, index=True)
    suggested_quantity = Column(Integer, nullable=False)
    estimated_cost = Column(Numeric(14, 2), nullable=False)
    urgency = Column(String(10), nullable=False)
    confidence_score = Column(Numeric(5, 2), nullable=False)
    reason = Column(Text, nullable=False)
    lead_time_days = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    created_by_ai = Column(Boolean, nullable=False, default=True)
    ai_model_version = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
    expires_at = Column(DateTime, nullable=False)
