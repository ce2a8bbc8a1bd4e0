import time
from datetime import datetime, timedelta

import pytest

from app.core.exceptions import BusinessRuleViolationException, EntityNotFoundException
from app.database import SessionLocal
from app.ml.demand_forecaster import DemandForecaster
from app.models.analysis_job import AnalysisJob
from app.models.reorder_history import ReorderHistory
from app.models.reorder_suggestion import ReorderSuggestion
from app.services.analysis_job_service import PRODUCT_LOCK_STRIPES, AnalysisJobService
from app.services.reorder_settings_store import ReorderSettingsStore, reorder_settings_store


class SlowForecaster(DemandForecaster):
    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay

    def forecast(self, *args, **kwargs):
        time.sleep(self.delay)
        return super().forecast(*args, **kwargs)


class FailingForecaster(DemandForecaster):
    def __init__(self, failing_product_id: int):
        super().__init__()
        self.failing_product_id = failing_product_id

    def forecast(self, samples, current_stock, options=None, as_of=None, product_id=None):
        if product_id == self.failing_product_id:
            raise RuntimeError("demand history unreadable")
        return super().forecast(samples, current_stock, options=options, as_of=as_of, product_id=product_id)


@pytest.fixture
def make_service():
    services = []

    def _make(**kwargs):
        kwargs.setdefault("session_factory", SessionLocal)
        kwargs.setdefault("max_workers", 2)
        kwargs.setdefault("product_workers", 2)
        service = AnalysisJobService(**kwargs)
        services.append(service)
        return service

    yield _make
    for service in services:
        service.shutdown(wait_for_jobs=True)


def suggestions_for(db, product_id):
    db.expire_all()
    return db.query(ReorderSuggestion).filter(ReorderSuggestion.product_id == product_id).all()


class TestTrigger:

    def test_job_runs_to_completion(self, db, job_service, product, wait_for_job):
        job = job_service.trigger(requested_by="planner-1")
        assert job.status == "started"
        assert job.estimated_completion is not None

        finished = wait_for_job(job_service, job.job_id)

        assert finished.status == "completed"
        assert finished.products_count == 1
        assert finished.processed_count == 1
        assert finished.failed_count == 0
        assert finished.suggestions_count == 1
        assert finished.started_at is not None and finished.completed_at is not None

        [suggestion] = suggestions_for(db, product.id)
        assert suggestion.status == "pending"
        assert suggestion.suggested_quantity == 50
        assert suggestion.urgency == "critical"

    def test_second_trigger_returns_in_flight_job(self, db, make_service, product, wait_for_job):
        service = make_service(forecaster=SlowForecaster(0.5))

        first = service.trigger()
        second = service.trigger()
        other_scope = service.trigger(scope="product", target_id=product.id)

        assert second.job_id == first.job_id
        assert other_scope.job_id != first.job_id
        wait_for_job(service, first.job_id)
        wait_for_job(service, other_scope.job_id)

        # both jobs upserted the same product; it still has exactly one pending suggestion
        pending = [s for s in suggestions_for(db, product.id) if s.status == "pending"]
        assert len(pending) == 1

    def test_new_job_after_previous_one_finished(self, db, job_service, product, wait_for_job):
        first = job_service.trigger()
        wait_for_job(job_service, first.job_id)
        second = job_service.trigger()
        wait_for_job(job_service, second.job_id)

        assert second.job_id != first.job_id
        pending = [s for s in suggestions_for(db, product.id) if s.status == "pending"]
        assert len(pending) == 1

    def test_overlapping_jobs_keep_one_pending_suggestion(self, db, make_service, product, product_factory, wait_for_job):
        other = product_factory("SKU-OTHER", quantity=5, daily_demand=[10] * 60)
        service = make_service(forecaster=SlowForecaster(0.3), max_workers=3, product_workers=4)

        jobs = [
            service.trigger(),
            service.trigger(scope="product", target_id=product.id),
            service.trigger(scope="product", target_id=other.id),
        ]
        for job in jobs:
            assert wait_for_job(service, job.job_id).status == "completed"

        for product_id in (product.id, other.id):
            pending = [s for s in suggestions_for(db, product_id) if s.status == "pending"]
            assert len(pending) == 1

    def test_product_locks_are_a_fixed_pool(self, job_service):
        locks = {id(job_service._product_lock(product_id)) for product_id in range(1, 1000)}

        assert len(locks) == PRODUCT_LOCK_STRIPES
        assert job_service._product_lock(7) is job_service._product_lock(7)

    def test_scope_validation(self, job_service):
        with pytest.raises(BusinessRuleViolationException):
            job_service.trigger(scope="warehouse")
        with pytest.raises(BusinessRuleViolationException):
            job_service.trigger(scope="category")

    def test_unknown_job_id(self, job_service):
        with pytest.raises(EntityNotFoundException):
            job_service.get_job("missing")


class TestExecution:

    def test_timeout_marks_job_failed(self, make_service, product, wait_for_job):
        service = make_service(forecaster=SlowForecaster(1.0), job_timeout_seconds=0.2)

        job = service.trigger()
        finished = wait_for_job(service, job.job_id)

        assert finished.status == "failed"
        assert "exceeded" in finished.error

    def test_product_failure_does_not_fail_job(self, db, make_service, product, product_factory, wait_for_job):
        broken = product_factory("SKU-BROKEN", quantity=5, daily_demand=[10] * 30)
        service = make_service(forecaster=FailingForecaster(broken.id))

        finished = wait_for_job(service, service.trigger().job_id)

        assert finished.status == "completed"
        assert finished.processed_count == 1
        assert finished.failed_count == 1
        assert len(suggestions_for(db, product.id)) == 1
        assert suggestions_for(db, broken.id) == []

    def test_missing_global_policy_fails_job(self, job_service, product_factory, wait_for_job):
        product_factory("SKU-ORPHAN", quantity=5, daily_demand=[10] * 30)

        finished = wait_for_job(job_service, job_service.trigger().job_id)

        assert finished.status == "failed"
        assert "global reorder policy" in finished.error

    def test_urgency_only_skips_healthy_stock(self, db, job_service, product, product_factory, wait_for_job):
        low = product_factory("SKU-LOW", quantity=10, low_stock_threshold=20, daily_demand=[10] * 60)

        finished = wait_for_job(job_service, job_service.trigger(urgency_only=True).job_id)

        assert finished.status == "completed"
        assert finished.processed_count == 2
        assert finished.suggestions_count == 1
        assert suggestions_for(db, product.id) == []
        assert len(suggestions_for(db, low.id)) == 1

    def test_stock_above_reorder_point_creates_nothing(self, db, job_service, product_factory, global_policy, wait_for_job):
        healthy = product_factory("SKU-FULL", quantity=500, daily_demand=[10] * 60)

        finished = wait_for_job(job_service, job_service.trigger().job_id)

        assert finished.status == "completed"
        assert finished.suggestions_count == 0
        assert suggestions_for(db, healthy.id) == []

    def test_confident_cheap_suggestion_is_auto_approved(self, db, job_service, product, wait_for_job):
        reorder_settings_store.update({
            "auto_reorder_enabled": True,
            "default_confidence_threshold": 80,
            "max_auto_approve_amount": 500,
        })

        finished = wait_for_job(job_service, job_service.trigger().job_id)

        assert finished.auto_approved_count == 1
        [suggestion] = suggestions_for(db, product.id)
        assert suggestion.status == "approved"
        assert float(suggestion.confidence_score) == pytest.approx(83.5, abs=0.1)
        history = db.query(ReorderHistory).filter_by(suggestion_id=suggestion.id).one()
        assert history.action_taken == "auto_ordered"

    def test_job_reads_settings_saved_by_another_process(self, db, job_service, product, wait_for_job):
        assert reorder_settings_store.get().auto_reorder_enabled is False
        ReorderSettingsStore(session_factory=SessionLocal).update({
            "auto_reorder_enabled": True,
            "default_confidence_threshold": 80,
            "max_auto_approve_amount": 500,
        })

        finished = wait_for_job(job_service, job_service.trigger().job_id)

        assert finished.auto_approved_count == 1
        [suggestion] = suggestions_for(db, product.id)
        assert suggestion.status == "approved"


class TestMaintenance:

    def test_stale_jobs_are_reaped_on_trigger(self, db, make_service, product, wait_for_job):
        stale = AnalysisJob(
            job_id="stale-job",
            scope="all",
            target_key="*",
            status="running",
            created_at=datetime.utcnow() - timedelta(hours=2),
        )
        db.add(stale)
        db.commit()

        service = make_service(job_timeout_seconds=5)
        job = service.trigger()

        assert job.job_id != "stale-job"
        reaped = service.get_job("stale-job")
        assert reaped.status == "failed"
        assert "exceeded" in reaped.error
        wait_for_job(service, job.job_id)

    def test_stale_job_is_reaped_when_polled(self, db, make_service):
        db.add(AnalysisJob(
            job_id="orphaned-job",
            scope="product",
            target_id=42,
            target_key="42",
            status="running",
            created_at=datetime.utcnow() - timedelta(hours=2),
        ))
        db.commit()
        service = make_service(job_timeout_seconds=5)

        polled = service.get_job("orphaned-job")

        assert polled.status == "failed"
        assert "exceeded" in polled.error
        assert polled.completed_at is not None

    def test_polling_leaves_fresh_jobs_alone(self, db, make_service):
        db.add(AnalysisJob(job_id="fresh-job", scope="all", target_key="*", status="running",
                           created_at=datetime.utcnow()))
        db.commit()
        service = make_service(job_timeout_seconds=5)

        assert service.get_job("fresh-job").status == "running"

    def test_cleanup_removes_only_old_terminal_jobs(self, db, job_service):
        now = datetime.utcnow()
        db.add_all([
            AnalysisJob(job_id="old", scope="all", target_key="*", status="completed",
                        created_at=now - timedelta(days=40), completed_at=now - timedelta(days=40)),
            AnalysisJob(job_id="recent", scope="all", target_key="*", status="failed",
                        created_at=now - timedelta(days=2), completed_at=now - timedelta(days=2)),
        ])
        db.commit()

        result = job_service.cleanup_old_jobs(retention_days=30)

        assert result["deleted_jobs"] == 1
        assert [j.job_id for j in job_service.list_jobs()] == ["recent"]

    def test_metrics(self, job_service, product, wait_for_job):
        wait_for_job(job_service, job_service.trigger().job_id)

        metrics = job_service.get_job_metrics()

        assert metrics["total_jobs"] == 1
        assert metrics["by_status"]["completed"] == 1
        assert metrics["suggestions_generated"] == 1
        assert metrics["avg_processing_time_ms"] is not None
