"""
Catalog Read Repository

Read-only boundary to the inventory application's product, supplier, order
and policy data. The engine consumes catalog data exclusively through
``CatalogReader``; it never writes these tables.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import EntityNotFoundException
from app.ml.demand_forecaster import DemandSample
from app.models.demand_sample import DemandSampleRecord
from app.models.product import Product, Supplier
from app.models.reorder_policy import ReorderPolicy

DEFAULT_LEAD_TIME_DAYS = 7


class CatalogReader:

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> Product:
        product = self.db.get(Product, product_id)
        if not product:
            raise EntityNotFoundException("Product", product_id)
        return product

    def get_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.db.get(Supplier, supplier_id)
        if not supplier:
            raise EntityNotFoundException("Supplier", supplier_id)
        return supplier

    def list_products(self, scope: str = "all", target_id: Optional[int] = None) -> List[Product]:
        q = self.db.query(Product)
        if scope == "category":
            q = q.filter(Product.category_id == target_id)
        elif scope == "supplier":
            q = q.filter(Product.supplier_id == target_id)
        elif scope == "product":
            q = q.filter(Product.id == target_id)
        return q.order_by(Product.id).all()

    def read_demand_history(self, product_id: int, since: datetime) -> List[DemandSample]:
        rows = (
            self.db.query(DemandSampleRecord)
            .filter(
                DemandSampleRecord.product_id == product_id,
                DemandSampleRecord.occurred_at >= since,
            )
            .order_by(DemandSampleRecord.occurred_at)
            .all()
        )
        return [
            DemandSample(product_id=r.product_id, timestamp=r.occurred_at, quantity=int(r.quantity))
            for r in rows
            if r.occurred_at is not None and r.quantity is not None and r.quantity >= 0
        ]

    def read_current_stock(self, product_id: int) -> int:
        return int(self.get_product(product_id).quantity or 0)

    def read_unit_price(self, product_id: int) -> Decimal:
        return Decimal(str(self.get_product(product_id).price or 0))

    def read_supplier_lead_time(self, supplier_id: Optional[int]) -> int:
        if supplier_id is None:
            return DEFAULT_LEAD_TIME_DAYS
        supplier = self.db.get(Supplier, supplier_id)
        if not supplier or not supplier.avg_lead_time_days:
            return DEFAULT_LEAD_TIME_DAYS
        return int(supplier.avg_lead_time_days)

    def read_active_policies(self) -> List[ReorderPolicy]:
        return (
            self.db.query(ReorderPolicy)
            .filter(ReorderPolicy.is_active.is_(True))
            .order_by(ReorderPolicy.created_at.desc(), ReorderPolicy.id.desc())
            .all()
        )
