"""
Analysis Job Maintenance Utility

Runner-style helpers executed outside the request/response flow (cron, CI,
scheduled task runner): job retention cleanup and the periodic full-catalog
analysis driven by ``analysis_frequency_hours``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from app.services.analysis_job_service import AnalysisJobService, analysis_job_service
from app.services.reorder_settings_store import ReorderSettingsStore, reorder_settings_store

logger = logging.getLogger(__name__)

SCHEDULER_USER = "scheduler"


def run_analysis_job_cleanup(
    retention_days: Optional[int] = None,
    requested_by: Optional[str] = SCHEDULER_USER,
    service: Optional[AnalysisJobService] = None,
) -> dict:
    """Execute cleanup and return structured summary."""
    service = service or analysis_job_service
    return service.cleanup_old_jobs(retention_days=retention_days, requested_by=requested_by)


def run_scheduled_analysis(
    now: Optional[datetime] = None,
    service: Optional[AnalysisJobService] = None,
    store: Optional[ReorderSettingsStore] = None,
) -> dict:
    """Trigger a full analysis when the last completed one is older than the configured frequency."""
    service = service or analysis_job_service
    store = store or reorder_settings_store
    now = now or datetime.utcnow()
    frequency = timedelta(hours=store.get().analysis_frequency_hours)

    last = service.get_last_completed("all")
    if last is not None and last.completed_at is not None and now - last.completed_at < frequency:
        next_due = last.completed_at + frequency
        logger.info("scheduled_analysis_not_due last_completed=%s next_due=%s", last.completed_at, next_due)
        return {"triggered": False, "job_id": None, "next_due": next_due.isoformat()}

    job = service.trigger(scope="all", requested_by=SCHEDULER_USER)
    logger.info("scheduled_analysis_triggered job_id=%s", job.job_id)
    return {"triggered": True, "job_id": job.job_id, "next_due": None}
