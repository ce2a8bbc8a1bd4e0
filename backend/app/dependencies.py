"""
Request-scoped dependencies.

Authentication lives in front of this service; the gateway forwards the
acting user's id in ``X-User-Id``.
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.analysis_job_service import AnalysisJobService, analysis_job_service
from app.services.forecast_service import ForecastService
from app.services.policy_service import PolicyService
from app.services.reorder_settings_store import ReorderSettingsStore, reorder_settings_store
from app.services.suggestion_lifecycle_service import SuggestionLifecycleService

ANONYMOUS_USER = "anonymous"


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return ANONYMOUS_USER


def get_settings_store() -> ReorderSettingsStore:
    return reorder_settings_store


def get_analysis_job_service() -> AnalysisJobService:
    return analysis_job_service


def get_lifecycle_service(
    db: Session = Depends(get_db),
    store: ReorderSettingsStore = Depends(get_settings_store),
) -> SuggestionLifecycleService:
    return SuggestionLifecycleService(db, settings_store=store)


def get_policy_service(db: Session = Depends(get_db)) -> PolicyService:
    return PolicyService(db)


def get_forecast_service(db: Session = Depends(get_db)) -> ForecastService:
    return ForecastService(db)
