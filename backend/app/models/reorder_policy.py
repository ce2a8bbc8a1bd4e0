from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Numeric,
    CheckConstraint,
    Index,
    func,
    text,
)
from app.database import Base


class ReorderPolicy(Base):
    __tablename__ = "reorder_policies"
    __table_args__ = (
        CheckConstraint(
            "scope_type IN ('global', 'category', 'supplier', 'product')",
            name="ck_reorder_policies_scope_type",
        ),
        CheckConstraint(
            "(scope_type = 'global' AND scope_id IS NULL) OR (scope_type <> 'global' AND scope_id IS NOT NULL)",
            name="ck_reorder_policies_scope_id_presence",
        ),
        CheckConstraint("min_stock_multiplier >= 0", name="ck_reorder_policies_multiplier_non_negative"),
        CheckConstraint("safety_stock_days >= 0", name="ck_reorder_policies_safety_days_non_negative"),
        CheckConstraint("review_frequency_days >= 1", name="ck_reorder_policies_review_min_1"),
        CheckConstraint(
            "max_order_quantity IS NULL OR max_order_quantity >= 1",
            name="ck_reorder_policies_max_qty_min_1",
        ),
        CheckConstraint(
            "preferred_order_quantity IS NULL OR preferred_order_quantity >= 1",
            name="ck_reorder_policies_preferred_qty_min_1",
        ),
        CheckConstraint(
            "auto_approve_threshold IS NULL OR (auto_approve_threshold >= 0 AND auto_approve_threshold <= 100)",
            name="ck_reorder_policies_auto_threshold_range",
        ),
        Index(
            "uq_reorder_policies_active_scope",
            "scope_type",
            "scope_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    scope_type = Column(String(20), nullable=False)
    scope_id = Column(Integer, nullable=True)
    min_stock_multiplier = Column(Numeric(6, 3), nullable=False, default=1)
    safety_stock_days = Column(Integer, nullable=False, default=7)
    max_order_quantity = Column(Integer, nullable=True)
    preferred_order_quantity = Column(Integer, nullable=True)
    review_frequency_days = Column(Integer, nullable=False, default=7)
    auto_approve_threshold = Column(Numeric(5, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
