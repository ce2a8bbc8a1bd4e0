"""Seed a development database with a small demo catalog.

Usage:
    python scripts/seed_demo_data.py

Creates categories, suppliers and products with 120 days of synthetic
demand (weekly cycle plus noise), and the default global reorder policy.
Refuses to run when ENVIRONMENT is production. Safe to re-run: existing
SKUs are left untouched.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta
from decimal import Decimal

import numpy as np

from app.config import settings
from app.database import SessionLocal, create_tables
from app.models.demand_sample import DemandSampleRecord
from app.models.product import Category, Product, Supplier
from app.services.policy_service import PolicyService

HISTORY_DAYS = 120
RANDOM_SEED = 42

CATEGORIES = ("Hardware", "Electrical", "Plumbing")
SUPPLIERS = (
    ("Acme Supply", 7, "96.5"),
    ("Northwind Traders", 14, "88.0"),
    ("Globex Components", 4, "92.0"),
)
# sku, name, category index, supplier index, on hand, low-stock threshold, price, mean daily demand
PRODUCTS = (
    ("HW-1001", "Hex bolt M8 (box of 100)", 0, 0, 40, 30, "12.50", 9.0),
    ("HW-1002", "Wood screw 4x40 (box of 200)", 0, 0, 400, 50, "8.90", 6.0),
    ("EL-2001", "Cable tie 300mm (pack of 100)", 1, 1, 15, 25, "4.20", 5.0),
    ("EL-2002", "Wago connector 3-way", 1, 2, 0, 40, "0.65", 22.0),
    ("PL-3001", "PTFE tape 12mm", 2, 1, 90, 20, "1.10", 3.0),
    ("PL-3002", "Compression fitting 15mm", 2, 2, 60, 25, "2.75", 4.0),
)


def _demand_series(rng: np.random.Generator, mean: float) -> list[int]:
    days = np.arange(HISTORY_DAYS)
    weekly = 1 + 0.25 * np.sin(2 * np.pi * days / 7)
    noisy = rng.poisson(mean * weekly)
    return [int(v) for v in noisy]


def run() -> int:
    if settings.is_production:
        print("Refusing to seed demo data when ENVIRONMENT is production.")
        return 1

    create_tables()
    rng = np.random.default_rng(RANDOM_SEED)
    today = datetime.utcnow().replace(hour=12, minute=0, second=0, microsecond=0)

    db = SessionLocal()
    try:
        PolicyService(db).ensure_global_policy()

        categories = []
        for name in CATEGORIES:
            category = db.query(Category).filter(Category.name == name).first()
            if not category:
                category = Category(name=name)
                db.add(category)
            categories.append(category)

        suppliers = []
        for name, lead_time, reliability in SUPPLIERS:
            supplier = db.query(Supplier).filter(Supplier.name == name).first()
            if not supplier:
                supplier = Supplier(name=name, avg_lead_time_days=lead_time, reliability_score=Decimal(reliability))
                db.add(supplier)
            suppliers.append(supplier)
        db.flush()

        created = 0
        for sku, name, cat_idx, sup_idx, on_hand, threshold, price, mean in PRODUCTS:
            if db.query(Product).filter(Product.sku == sku).first():
                continue
            product = Product(
                sku=sku,
                name=name,
                category_id=categories[cat_idx].id,
                supplier_id=suppliers[sup_idx].id,
                quantity=on_hand,
                low_stock_threshold=threshold,
                price=Decimal(price),
            )
            db.add(product)
            db.flush()
            for offset, qty in enumerate(_demand_series(rng, mean)):
                if qty == 0:
                    continue
                db.add(DemandSampleRecord(
                    product_id=product.id,
                    occurred_at=today - timedelta(days=HISTORY_DAYS - 1 - offset),
                    quantity=qty,
                ))
            created += 1

        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    print(f"Seeded {created} products with {HISTORY_DAYS} days of demand history.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
