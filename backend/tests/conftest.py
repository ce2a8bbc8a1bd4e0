"""
Shared pytest fixtures.

The database URL is pointed at a throwaway SQLite file before any ``app``
module is imported, so the engine, SessionLocal and the background job
workers all talk to the same test database.
"""
import os
import tempfile
import time
from datetime import datetime, timedelta
from decimal import Decimal

_TEST_DB_DIR = tempfile.mkdtemp(prefix="nimbus-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["AUTO_CREATE_TABLES"] = "true"
os.environ["LOG_FORMAT"] = "standard"
os.environ["ENABLE_REQUEST_LOGGING"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import app.models  # noqa: E402,F401
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.dependencies import get_analysis_job_service  # noqa: E402
from app.main import app  # noqa: E402
from app.models.demand_sample import DemandSampleRecord  # noqa: E402
from app.models.product import Category, Product, Supplier  # noqa: E402
from app.models.reorder_policy import ReorderPolicy  # noqa: E402
from app.services.analysis_job_service import AnalysisJobService  # noqa: E402
from app.services.reorder_settings_store import reorder_settings_store  # noqa: E402
from app.utils.events import configure_event_bus  # noqa: E402

TERMINAL_JOB_STATUSES = ("completed", "failed")


@pytest.fixture(autouse=True)
def _fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    configure_event_bus()
    reorder_settings_store.reset()
    yield
    reorder_settings_store.reset()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def job_service():
    service = AnalysisJobService(session_factory=SessionLocal, max_workers=2, product_workers=4)
    yield service
    service.shutdown(wait_for_jobs=True)


@pytest.fixture
def client(job_service):
    app.dependency_overrides[get_analysis_job_service] = lambda: job_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-User-Id": "planner-1"}


@pytest.fixture
def global_policy(db) -> ReorderPolicy:
    policy = ReorderPolicy(
        scope_type="global",
        scope_id=None,
        min_stock_multiplier=Decimal("1.0"),
        safety_stock_days=3,
        review_frequency_days=7,
        is_active=True,
        created_by="system",
    )
    db.add(policy)
    db.commit()
    db.refresh(policy)
    return policy


@pytest.fixture
def category(db) -> Category:
    category = Category(name="Hardware")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@pytest.fixture
def supplier(db) -> Supplier:
    supplier = Supplier(name="Acme Supply", avg_lead_time_days=7, reliability_score=Decimal("95"))
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


@pytest.fixture
def product(db, category, supplier, global_policy) -> Product:
    """50 units on hand, 10 units/day demand, 7-day lead time → reorder point 100."""
    product = make_product(db, "SKU-001", category, supplier, quantity=50)
    seed_daily_demand(db, product.id, [10] * 60)
    return product


@pytest.fixture
def product_factory(db, category, supplier):
    def _make(sku: str, quantity: int = 50, low_stock_threshold: int = 20, price: str = "8.00", daily_demand=None):
        product = make_product(db, sku, category, supplier, quantity, low_stock_threshold, price)
        if daily_demand:
            seed_daily_demand(db, product.id, daily_demand)
        return product

    return _make


@pytest.fixture
def wait_for_job():
    def _wait(service, job_id: str, timeout: float = 15.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            job = service.get_job(job_id)
            if job.status in TERMINAL_JOB_STATUSES:
                return job
            time.sleep(0.05)
        raise AssertionError(f"analysis job {job_id} did not finish within {timeout}s")

    return _wait


def make_product(
    db,
    sku: str,
    category=None,
    supplier=None,
    quantity: int = 50,
    low_stock_threshold: int = 20,
    price: str = "8.00",
) -> Product:
    product = Product(
        sku=sku,
        name=f"Product {sku}",
        category_id=category.id if category else None,
        supplier_id=supplier.id if supplier else None,
        quantity=quantity,
        low_stock_threshold=low_stock_threshold,
        price=Decimal(price),
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def seed_daily_demand(db, product_id: int, quantities, as_of: datetime = None) -> None:
    """One sample per day, the last one on ``as_of``'s date."""
    as_of = as_of or datetime.utcnow()
    anchor = as_of.replace(hour=0, minute=0, second=0, microsecond=0)
    count = len(quantities)
    for offset, qty in enumerate(quantities):
        db.add(DemandSampleRecord(
            product_id=product_id,
            occurred_at=anchor - timedelta(days=count - 1 - offset),
            quantity=qty,
        ))
    db.commit()
