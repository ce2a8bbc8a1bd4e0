"""
Reorder Router: Thin Controller (SRP / DIP)
Delegates to the lifecycle, policy, forecast and analysis job services.
Domain exceptions are converted to HTTP responses by the global handlers.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from typing import Optional, List
from datetime import datetime

from app.config import settings
from app.dependencies import (
    get_analysis_job_service,
    get_current_user_id,
    get_forecast_service,
    get_lifecycle_service,
    get_policy_service,
    get_settings_store,
)
from app.ml.demand_forecaster import ForecastOptions
from app.schemas.reorder import (
    AnalysisJobCleanupRequest,
    AnalysisJobResponse,
    AnalyzeRequest,
    AnalyzeResponse,
    BulkActionResult,
    BulkApproveRequest,
    BulkRejectRequest,
    DemandForecastResponse,
    DemandPatternResponse,
    OutcomeUpdateRequest,
    PurchaseOrderResponse,
    ReorderHistoryResponse,
    ReorderPolicyCreate,
    ReorderPolicyResponse,
    ReorderPolicyUpdate,
    ReorderSettingsResponse,
    ReorderSettingsUpdate,
    ReorderSuggestionResponse,
    SuggestionActionRequest,
    SuggestionListResponse,
)
from app.services.analysis_job_service import AnalysisJobService
from app.services.forecast_service import ForecastService
from app.services.policy_service import PolicyService
from app.services.reorder_settings_store import ReorderSettingsStore
from app.services.suggestion_export_service import export_suggestions
from app.services.suggestion_lifecycle_service import SuggestionLifecycleService

router = APIRouter(prefix="/reorder", tags=["Reorder Recommendations"])

URGENCY_PATTERN = "^(all|critical|high|medium|low)$"
STATUS_PATTERN = "^(pending|approved|rejected|ordered)$"


# ── Suggestions ──────────────────────────────────────────────────────────────

@router.get("/suggestions", response_model=SuggestionListResponse)
def list_suggestions(
    urgency: Optional[str] = Query(None, pattern=URGENCY_PATTERN),
    category: Optional[int] = None,
    supplier: Optional[int] = None,
    min_confidence: Optional[float] = Query(None, ge=0, le=100),
    status_filter: str = Query("pending", alias="status", pattern=STATUS_PATTERN),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    service: SuggestionLifecycleService = Depends(get_lifecycle_service),
):
    return service.list_suggestions(
        status=status_filter,
        urgency=urgency,
        category_id=category,
        supplier_id=supplier,
        min_confidence=min_confidence,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/suggestions/export")
def export_suggestion_list(
    format: str = Query("csv", pattern="^(csv|excel)$"),
    urgency: Optional[str] = Query(None, pattern=URGENCY_PATTERN),
    category: Optional[int] = None,
    supplier: Optional[int] = None,
    min_confidence: Optional[float] = Query(None, ge=0, le=100),
    status_filter: str = Query("pending", alias="status", pattern=STATUS_PATTERN),
    service: SuggestionLifecycleService = Depends(get_lifecycle_service),
):
    """Download the filtered suggestion list as CSV or XLSX."""
    result = service.list_suggestions(
        status=status_filter,
        urgency=urgency,
        category_id=category,
        supplier_id=supplier,
        min_confidence=min_confidence,
    )
    content, media_type, filename = export_suggestions(result["suggestions"], format)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/suggestions/bulk-approve", response_model=BulkActionResult)
def bulk_approve(
    payload: BulkApproveRequest,
    service: SuggestionLifecycleService = Depends(get_lifecycle_service),
    user_id: str = Depends(get_current_user_id),
):
    return service.bulk_act(payload.ids, "approve", user_id=user_id)


@router.post("/suggestions/bulk-reject", response_model=BulkActionResult)
def bulk_reject(
    payload: BulkRejectRequest,
    service: SuggestionLifecycleService = Depends(get_lifecycle_service),
    user_id: str = Depends(get_current_user_id),
):
    return service.bulk_act(payload.ids, "reject", reason=payload.reason, user_id=user_id)


@router.get("/suggestions/{suggestion_id}", response_model=ReorderSuggestionResponse)
def get_suggestion(
    suggestion_id: int,
    service: SuggestionLifecycleService = Depends(get_lifecycle_service),
):
    return service.get_suggestion(suggestion_id)


@router.post("/suggestions/{suggestion_id}/action", response_model=ReorderSuggestionResponse)
def act_on_suggestion(
    suggestion_id: int,
    payload: SuggestionActionRequest,
    service: SuggestionLifecycleService = Depends(get_lifecycle_service),
    user_id: str = Depends(get_current_user_id),
):
    return service.act(
        suggestion_id,
        payload.action,
        reason=payload.reason,
        modifications=payload.modifications.model_dump(exclude_none=True) if payload.modifications else None,
        user_id=user_id,
    )


@router.post(
    "/suggestions/{suggestion_id}/order",
    response_model=PurchaseOrderResponse,
    status_code=status.HTTP_201_CREATED,
)
def convert_suggestion_to_order(
    suggestion_id: int,
    service: SuggestionLifecycleService = Depends(get_lifecycle_service),
    user_id: str = Depends(get_current_user_id),
):
    return service.convert_to_order(suggestion_id, user_id=user_id)


# ── Analysis jobs ────────────────────────────────────────────────────────────

@router.post("/analyze", response_model=AnalyzeResponse, status_code=status.HTTP_202_ACCEPTED)
def trigger_analysis(
    payload: AnalyzeRequest,
    jobs: AnalysisJobService = Depends(get_analysis_job_service),
    user_id: str = Depends(get_current_user_id),
):
    """Start (or join) an analysis pass; poll ``/job/{jobId}`` for progress."""
    job = jobs.trigger(
        scope=payload.scope,
        target_id=payload.target_id,
        urgency_only=payload.urgency_only,
        requested_by=user_id,
    )
    return AnalyzeResponse(jobId=job.job_id, estimatedCompletion=job.estimated_completion, status=job.status)


@router.get("/job/{job_id}", response_model=AnalysisJobResponse)
def get_analysis_job(job_id: str, jobs: AnalysisJobService = Depends(get_analysis_job_service)):
    return jobs.get_job(job_id)


@router.get("/jobs", response_model=List[AnalysisJobResponse])
def list_analysis_jobs(
    limit: int = Query(50, ge=1, le=500),
    jobs: AnalysisJobService = Depends(get_analysis_job_service),
):
    return jobs.list_jobs(limit=limit)


@router.get("/jobs/metrics")
def analysis_job_metrics(jobs: AnalysisJobService = Depends(get_analysis_job_service)):
    return jobs.get_job_metrics()


@router.post("/jobs/cleanup")
def cleanup_analysis_jobs(
    payload: Optional[AnalysisJobCleanupRequest] = None,
    jobs: AnalysisJobService = Depends(get_analysis_job_service),
    user_id: str = Depends(get_current_user_id),
):
    retention_days = payload.retention_days if payload else None
    return jobs.cleanup_old_jobs(retention_days=retention_days, requested_by=user_id)


# ── Settings ─────────────────────────────────────────────────────────────────

@router.get("/settings", response_model=ReorderSettingsResponse)
def get_reorder_settings(store: ReorderSettingsStore = Depends(get_settings_store)):
    return store.get().to_dict()


@router.put("/settings", response_model=ReorderSettingsResponse)
def update_reorder_settings(
    payload: ReorderSettingsUpdate,
    store: ReorderSettingsStore = Depends(get_settings_store),
    user_id: str = Depends(get_current_user_id),
):
    return store.update(payload.model_dump(exclude_unset=True), user_id=user_id).to_dict()


# ── Policies ─────────────────────────────────────────────────────────────────

@router.get("/policies", response_model=List[ReorderPolicyResponse])
def list_policies(
    active_only: bool = True,
    service: PolicyService = Depends(get_policy_service),
):
    return service.list_policies(active_only=active_only)


@router.post("/policies", response_model=ReorderPolicyResponse, status_code=status.HTTP_201_CREATED)
def create_policy(
    payload: ReorderPolicyCreate,
    service: PolicyService = Depends(get_policy_service),
    user_id: str = Depends(get_current_user_id),
):
    return service.create_policy(payload, user_id=user_id)


@router.put("/policies/{policy_id}", response_model=ReorderPolicyResponse)
def update_policy(
    policy_id: int,
    payload: ReorderPolicyUpdate,
    service: PolicyService = Depends(get_policy_service),
    user_id: str = Depends(get_current_user_id),
):
    return service.update_policy(policy_id, payload, user_id=user_id)


@router.post("/policies/{policy_id}/deactivate", response_model=ReorderPolicyResponse)
def deactivate_policy(
    policy_id: int,
    service: PolicyService = Depends(get_policy_service),
    user_id: str = Depends(get_current_user_id),
):
    return service.deactivate_policy(policy_id, user_id=user_id)


# ── Forecasts ────────────────────────────────────────────────────────────────

@router.get("/forecast/{product_id}", response_model=DemandForecastResponse)
def forecast_product(
    product_id: int,
    horizon: int = Query(settings.FORECAST_HORIZON_DAYS, ge=1, le=365),
    include_confidence_intervals: bool = False,
    include_seasonality: bool = True,
    include_external_factors: bool = False,
    service: ForecastService = Depends(get_forecast_service),
):
    options = ForecastOptions(
        horizon_days=horizon,
        include_confidence_intervals=include_confidence_intervals,
        include_seasonality=include_seasonality,
        include_external_factors=include_external_factors,
    )
    return service.forecast_product(product_id, options=options)


@router.get("/forecast/{product_id}/patterns", response_model=List[DemandPatternResponse])
def list_demand_patterns(product_id: int, service: ForecastService = Depends(get_forecast_service)):
    return service.list_demand_patterns(product_id)


@router.post("/forecast/{product_id}/patterns", response_model=List[DemandPatternResponse])
def refresh_demand_patterns(
    product_id: int,
    months: int = Query(12, ge=1, le=36),
    service: ForecastService = Depends(get_forecast_service),
):
    return service.refresh_demand_patterns(product_id, months=months)


# ── History & orders ─────────────────────────────────────────────────────────

@router.get("/history", response_model=List[ReorderHistoryResponse])
def list_history(
    product_id: Optional[int] = None,
    suggestion_id: Optional[int] = None,
    action: Optional[str] = Query(None, pattern="^(approved|rejected|modified|auto_ordered)$"),
    limit: int = Query(100, ge=1, le=1000),
    service: SuggestionLifecycleService = Depends(get_lifecycle_service),
):
    return service.list_history(product_id=product_id, suggestion_id=suggestion_id, action_taken=action, limit=limit)


@router.post("/history/{history_id}/outcome", response_model=ReorderHistoryResponse)
def record_outcome(
    history_id: int,
    payload: OutcomeUpdateRequest,
    service: SuggestionLifecycleService = Depends(get_lifecycle_service),
):
    return service.record_outcome(history_id, payload.model_dump(exclude_unset=True))


@router.get("/auto-orders", response_model=List[PurchaseOrderResponse])
def list_auto_orders(
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(pending|placed|received|cancelled)$"),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    service: SuggestionLifecycleService = Depends(get_lifecycle_service),
):
    return service.list_auto_orders(status=status_filter, date_from=date_from, date_to=date_to)
