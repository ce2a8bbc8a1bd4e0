from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Numeric,
    ForeignKey,
    CheckConstraint,
    func,
)
from app.database import Base


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_purchase_orders_quantity_min_1"),
        CheckConstraint("total >= 0", name="ck_purchase_orders_total_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'placed', 'received', 'cancelled')",
            name="ck_purchase_orders_status",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(40), unique=True, nullable=False, index=True)
    suggestion_id = Column(Integer, ForeignKey("reorder_suggestions.id"), nullable=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    quantity = Column(Integer, nullable=False)
    total = Column(Numeric(14, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    auto_generated = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
