"""
Analysis Job Service

Runs forecasting + suggestion passes over a product scope in the background.
Callers get a job handle immediately and poll it for progress.

- One in-flight job per (scope, target): a second trigger returns the
  existing handle. A trigger lock covers the check-then-insert in process;
  a partial unique index covers it across processes.
- Jobs run on a small executor; per-product work fans out to a second pool.
  Suggestion upserts are serialised per product.
- A job that outlives ``ANALYSIS_JOB_TIMEOUT_SECONDS`` is marked failed.
  Jobs left non-terminal by a dead process are reaped on the next trigger.

Note:
- This is an in-process implementation. For multi-node deployments move the
  executor behind a durable queue and keep the jobs table as the status store.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Set
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    JobTimeoutException,
    PolicyResolutionFailure,
)
from app.database import SessionLocal
from app.ml.demand_forecaster import DemandForecaster
from app.models.analysis_job import AnalysisJob
from app.repositories.analysis_job_repository import ACTIVE_STATUSES, AnalysisJobRepository
from app.repositories.catalog_repository import CatalogReader
from app.services.forecast_service import ForecastService, build_forecaster
from app.services.policy_service import PolicySnapshot, resolve_policy
from app.services.reorder_settings_store import (
    ReorderSettingsSnapshot,
    ReorderSettingsStore,
    reorder_settings_store,
)
from app.services.suggestion_generator import UrgencyThresholds, generate_suggestion
from app.services.suggestion_lifecycle_service import SuggestionLifecycleService
from app.utils.events import get_event_bus, AnalysisJobFinishedEvent, AnalysisJobsCleanedEvent

logger = logging.getLogger(__name__)

SCOPES = ("all", "category", "supplier", "product")
STALE_GRACE_SECONDS = 60
PRODUCT_LOCK_STRIPES = 64

SKIPPED = "skipped"
NO_ACTION = "no_action"
SUGGESTED = "suggested"
AUTO_APPROVED = "auto_approved"
ABANDONED = "abandoned"


@dataclass(frozen=True)
class ProductWorkItem:
    product_id: int
    category_id: Optional[int]
    supplier_id: Optional[int]
    current_stock: int
    low_stock_threshold: int


@dataclass
class JobTally:
    processed: int = 0
    failed: int = 0
    suggestions: int = 0
    auto_approved: int = 0

    def record(self, outcome: Optional[str]) -> None:
        if outcome is None:
            self.failed += 1
            return
        self.processed += 1
        if outcome in (SUGGESTED, AUTO_APPROVED):
            self.suggestions += 1
        if outcome == AUTO_APPROVED:
            self.auto_approved += 1


def scope_target_key(target_id: Optional[int]) -> str:
    return str(target_id) if target_id is not None else "*"


class AnalysisJobService:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        max_workers: Optional[int] = None,
        product_workers: Optional[int] = None,
        settings_store: Optional[ReorderSettingsStore] = None,
        forecaster: Optional[DemandForecaster] = None,
        job_timeout_seconds: Optional[float] = None,
        per_product_budget_seconds: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.ANALYSIS_MAX_WORKERS,
            thread_name_prefix="analysis-job",
        )
        self._product_executor = ThreadPoolExecutor(
            max_workers=product_workers or settings.ANALYSIS_PRODUCT_WORKERS,
            thread_name_prefix="analysis-product",
        )
        self._settings_store = settings_store or reorder_settings_store
        self._forecaster = forecaster or build_forecaster()
        self._thresholds = UrgencyThresholds.from_settings()
        self._job_timeout = job_timeout_seconds or settings.ANALYSIS_JOB_TIMEOUT_SECONDS
        self._per_product_budget = per_product_budget_seconds or settings.ANALYSIS_PER_PRODUCT_BUDGET_SECONDS
        self._bus = get_event_bus()

        self._trigger_lock = threading.Lock()
        # products share a fixed pool of locks keyed by id
        self._product_locks: List[threading.Lock] = [threading.Lock() for _ in range(PRODUCT_LOCK_STRIPES)]
        self._inflight: Set[str] = set()
        self._cancel_flags: Dict[str, threading.Event] = {}

    # ── Public API ──────────────────────────────────────────────────────────

    def trigger(
        self,
        *,
        scope: str = "all",
        target_id: Optional[int] = None,
        urgency_only: bool = False,
        requested_by: Optional[str] = None,
    ) -> AnalysisJob:
        if scope not in SCOPES:
            raise BusinessRuleViolationException(f"Unknown analysis scope '{scope}'", {"allowed": list(SCOPES)})
        if scope == "all":
            target_id = None
        elif target_id is None:
            raise BusinessRuleViolationException(f"target_id is required for scope '{scope}'")
        target_key = scope_target_key(target_id)

        with self._trigger_lock:
            db = self._session_factory()
            try:
                self._reap_stale_jobs(db)
                repo = AnalysisJobRepository(db)
                existing = repo.get_active_for_scope(scope, target_key)
                if existing:
                    logger.info("analysis_job_reused job_id=%s scope=%s target=%s", existing.job_id, scope, target_key)
                    return existing

                now = datetime.utcnow()
                job = AnalysisJob(
                    job_id=str(uuid4()),
                    scope=scope,
                    target_id=target_id,
                    target_key=target_key,
                    urgency_only=urgency_only,
                    status="started",
                    requested_by=requested_by,
                    created_at=now,
                    estimated_completion=now + timedelta(seconds=self._per_product_budget),
                )
                try:
                    job = repo.create(job)
                except IntegrityError:
                    # Another process won the race for this scope.
                    db.rollback()
                    existing = repo.get_active_for_scope(scope, target_key)
                    if existing:
                        return existing
                    raise
                self._inflight.add(job.job_id)
                self._cancel_flags[job.job_id] = threading.Event()
            finally:
                db.close()

        logger.info(
            "analysis_job_started job_id=%s scope=%s target=%s urgency_only=%s requested_by=%s",
            job.job_id,
            scope,
            target_key,
            urgency_only,
            requested_by,
        )
        self._executor.submit(self._run_job, job.job_id)
        return job

    def get_job(self, job_id: str) -> AnalysisJob:
        db = self._session_factory()
        try:
            self._reap_stale_jobs(db, job_id=job_id)
            job = AnalysisJobRepository(db).get_by_job_id(job_id)
            if not job:
                raise EntityNotFoundException("AnalysisJob", job_id)
            return job
        finally:
            db.close()

    def get_last_completed(self, scope: str = "all", target_id: Optional[int] = None) -> Optional[AnalysisJob]:
        db = self._session_factory()
        try:
            return AnalysisJobRepository(db).get_latest_finished(scope, scope_target_key(target_id))
        finally:
            db.close()

    def list_jobs(self, limit: int = 50) -> List[AnalysisJob]:
        db = self._session_factory()
        try:
            return AnalysisJobRepository(db).list_recent(limit)
        finally:
            db.close()

    def get_job_metrics(self) -> dict:
        db = self._session_factory()
        try:
            jobs = AnalysisJobRepository(db).get_all()
            by_status = {"started": 0, "running": 0, "completed": 0, "failed": 0}
            for job in jobs:
                if job.status in by_status:
                    by_status[job.status] += 1

            durations_ms = [
                (job.completed_at - job.started_at).total_seconds() * 1000
                for job in jobs
                if job.started_at and job.completed_at
            ]
            avg_duration_ms = round(sum(durations_ms) / len(durations_ms), 2) if durations_ms else None

            cutoff = datetime.utcnow() - timedelta(hours=24)
            failed_last_24h = sum(
                1 for job in jobs
                if job.status == "failed" and job.completed_at and job.completed_at >= cutoff
            )
            suggestions_total = sum(job.suggestions_count or 0 for job in jobs if job.status == "completed")

            return {
                "total_jobs": len(jobs),
                "by_status": by_status,
                "avg_processing_time_ms": avg_duration_ms,
                "failed_last_24h": failed_last_24h,
                "suggestions_generated": suggestions_total,
            }
        finally:
            db.close()

    def cleanup_old_jobs(self, retention_days: Optional[int] = None, requested_by: Optional[str] = None) -> dict:
        days = retention_days or settings.ANALYSIS_JOB_RETENTION_DAYS
        cutoff = datetime.utcnow() - timedelta(days=days)
        db = self._session_factory()
        try:
            deleted = AnalysisJobRepository(db).delete_terminal_completed_before(cutoff)
        finally:
            db.close()

        self._bus.publish(AnalysisJobsCleanedEvent(
            retention_days=days,
            deleted_jobs=deleted,
            cutoff_iso=cutoff.isoformat(),
            user_id=requested_by,
        ))
        logger.info("analysis_jobs_cleaned retention_days=%s deleted=%s", days, deleted)
        return {"retention_days": days, "cutoff": cutoff.isoformat(), "deleted_jobs": deleted}

    def shutdown(self, wait_for_jobs: bool = True) -> None:
        if not wait_for_jobs:
            for flag in list(self._cancel_flags.values()):
                flag.set()
        self._executor.shutdown(wait=wait_for_jobs)
        self._product_executor.shutdown(wait=wait_for_jobs)

    # ── Job execution ───────────────────────────────────────────────────────

    def _run_job(self, job_id: str) -> None:
        deadline = time.monotonic() + self._job_timeout
        tally = JobTally()
        db = self._session_factory()
        try:
            repo = AnalysisJobRepository(db)
            job = repo.get_by_job_id(job_id)
            if not job or job.status != "started":
                return

            started_at = datetime.utcnow()
            job = repo.update(job, {"status": "running", "started_at": started_at})

            catalog = CatalogReader(db)
            products = catalog.list_products(job.scope, job.target_id)
            policies = [PolicySnapshot.from_model(p) for p in catalog.read_active_policies()]
            if not any(p.scope_type == "global" for p in policies):
                raise PolicyResolutionFailure("No active global reorder policy is configured")
            # re-read so changes made by other worker processes apply to this pass
            settings_snapshot = self._settings_store.load()

            work = [
                ProductWorkItem(
                    product_id=p.id,
                    category_id=p.category_id,
                    supplier_id=p.supplier_id,
                    current_stock=int(p.quantity or 0),
                    low_stock_threshold=int(p.low_stock_threshold or 0),
                )
                for p in products
            ]
            job = repo.update(job, {
                "products_count": len(work),
                "estimated_completion": started_at + timedelta(seconds=len(work) * self._per_product_budget),
            })

            cancel = self._cancel_flags.setdefault(job_id, threading.Event())
            pending = {
                self._product_executor.submit(
                    self._analyze_product, job_id, item, policies, settings_snapshot, job.urgency_only, cancel
                )
                for item in work
            }
            while pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
                for future in done:
                    tally.record(future.result())
                repo.update(job, {"processed_count": tally.processed, "failed_count": tally.failed})

            if pending:
                cancel.set()
                for future in pending:
                    future.cancel()
                raise JobTimeoutException(job_id, self._job_timeout)

            self._finish(db, job_id, "completed", tally)
        except JobTimeoutException as exc:
            logger.error("analysis_job_timed_out job_id=%s budget_seconds=%s", job_id, self._job_timeout)
            self._finish(db, job_id, "failed", tally, error=exc.message)
        except Exception as exc:  # noqa: BLE001
            logger.exception("analysis_job_failed job_id=%s", job_id)
            db.rollback()
            self._finish(db, job_id, "failed", tally, error=str(exc))
        finally:
            db.close()
            self._inflight.discard(job_id)
            self._cancel_flags.pop(job_id, None)

    def _analyze_product(
        self,
        job_id: str,
        item: ProductWorkItem,
        policies: List[PolicySnapshot],
        settings_snapshot: ReorderSettingsSnapshot,
        urgency_only: bool,
        cancel: threading.Event,
    ) -> Optional[str]:
        """Run forecast → generate → upsert → auto-approve for one product; ``None`` means it failed."""
        if cancel.is_set():
            return ABANDONED
        if urgency_only and item.current_stock > item.low_stock_threshold * settings.URGENCY_ONLY_STOCK_RATIO:
            return SKIPPED

        db = self._session_factory()
        try:
            catalog = CatalogReader(db)
            policy = resolve_policy(policies, item.product_id, item.category_id, item.supplier_id)
            current_stock = catalog.read_current_stock(item.product_id)
            forecast = ForecastService(db, forecaster=self._forecaster).forecast(item.product_id, current_stock)
            draft = generate_suggestion(
                product_id=item.product_id,
                supplier_id=item.supplier_id,
                current_stock=current_stock,
                forecast=forecast,
                policy=policy,
                unit_price=catalog.read_unit_price(item.product_id),
                lead_time_days=catalog.read_supplier_lead_time(item.supplier_id),
                thresholds=self._thresholds,
            )
            if draft is None:
                return NO_ACTION

            with self._product_lock(item.product_id):
                if cancel.is_set():
                    return ABANDONED
                lifecycle = SuggestionLifecycleService(db, settings_store=self._settings_store)
                suggestion = lifecycle.upsert(draft, policy)
                approved = lifecycle.auto_approve_check(
                    suggestion,
                    settings_snapshot,
                    policy=policy,
                    low_confidence=draft.low_confidence,
                )
            return AUTO_APPROVED if approved else SUGGESTED
        except Exception:  # noqa: BLE001
            db.rollback()
            logger.warning("analysis_product_failed job_id=%s product_id=%s", job_id, item.product_id, exc_info=True)
            return None
        finally:
            db.close()

    def _finish(self, db: Session, job_id: str, status: str, tally: JobTally, error: Optional[str] = None) -> None:
        repo = AnalysisJobRepository(db)
        job = repo.get_by_job_id(job_id)
        if not job or job.status not in ACTIVE_STATUSES:
            return
        repo.update(job, {
            "status": status,
            "processed_count": tally.processed,
            "failed_count": tally.failed,
            "suggestions_count": tally.suggestions,
            "auto_approved_count": tally.auto_approved,
            "error": error,
            "completed_at": datetime.utcnow(),
        })
        self._bus.publish(AnalysisJobFinishedEvent(
            job_id=job_id,
            status=status,
            products_count=job.products_count or 0,
            suggestions_count=tally.suggestions,
            failed_count=tally.failed,
            error=error,
        ))
        logger.info(
            "analysis_job_finished job_id=%s status=%s suggestions=%s failed_products=%s",
            job_id,
            status,
            tally.suggestions,
            tally.failed,
        )

    def _reap_stale_jobs(self, db: Session, job_id: Optional[str] = None) -> None:
        cutoff = datetime.utcnow() - timedelta(seconds=self._job_timeout + STALE_GRACE_SECONDS)
        repo = AnalysisJobRepository(db)
        for job in repo.list_active_created_before(cutoff):
            if job.job_id in self._inflight or (job_id is not None and job.job_id != job_id):
                continue
            repo.update(job, {
                "status": "failed",
                "error": JobTimeoutException(job.job_id, self._job_timeout).message,
                "completed_at": datetime.utcnow(),
            })
            logger.warning("analysis_job_reaped job_id=%s created_at=%s", job.job_id, job.created_at)

    def _product_lock(self, product_id: int) -> threading.Lock:
        return self._product_locks[product_id % PRODUCT_LOCK_STRIPES]


analysis_job_service = AnalysisJobService()
