from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from decimal import Decimal


# ── Suggestions ──────────────────────────────────────────────────────────────

class ReorderSuggestionResponse(BaseModel):
    id: int
    product_id: int
    supplier_id: Optional[int] = None
    suggested_quantity: int
    estimated_cost: Decimal
    urgency: str
    confidence_score: Decimal
    reason: str
    lead_time_days: int
    status: str
    created_by_ai: bool
    ai_model_version: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    expires_at: datetime

    class Config:
        from_attributes = True


class SuggestionSummary(BaseModel):
    total: int = 0
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
    total_estimated_cost: Decimal = Decimal("0")
    avg_confidence: float = 0.0


class SuggestionListResponse(BaseModel):
    suggestions: List[ReorderSuggestionResponse]
    summary: SuggestionSummary


class SuggestionModifications(BaseModel):
    suggested_quantity: Optional[int] = Field(None, ge=1)
    supplier_id: Optional[int] = None


class SuggestionActionRequest(BaseModel):
    action: str = Field(..., pattern="^(approve|reject|modify)$")
    reason: Optional[str] = Field(None, max_length=1000)
    modifications: Optional[SuggestionModifications] = None

    @model_validator(mode="after")
    def validate_modifications(self):
        if self.action == "modify" and not self.modifications:
            raise ValueError("modifications are required for the modify action")
        return self


class BulkApproveRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1, max_length=500)


class BulkRejectRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1, max_length=500)
    reason: str = Field(..., min_length=1, max_length=1000)


class BulkActionError(BaseModel):
    id: int
    code: str
    message: str


class BulkActionResult(BaseModel):
    successful: int
    failed: int
    total: int
    errors: List[BulkActionError] = []


# ── Purchase orders ──────────────────────────────────────────────────────────

class PurchaseOrderResponse(BaseModel):
    id: int
    order_number: str
    suggestion_id: Optional[int] = None
    product_id: int
    supplier_id: Optional[int] = None
    quantity: int
    total: Decimal
    status: str
    auto_generated: bool
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ── History ──────────────────────────────────────────────────────────────────

class ReorderHistoryResponse(BaseModel):
    id: int
    suggestion_id: Optional[int] = None
    product_id: int
    suggested_quantity: int
    actual_quantity_ordered: Optional[int] = None
    suggested_cost: Decimal
    actual_cost: Optional[Decimal] = None
    action_taken: str
    action_reason: Optional[str] = None
    stockout_occurred: bool
    overstock_occurred: bool
    accuracy_score: Optional[Decimal] = None
    user_id: Optional[str] = None
    created_at: datetime
    outcome_recorded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OutcomeUpdateRequest(BaseModel):
    stockout_occurred: Optional[bool] = None
    overstock_occurred: Optional[bool] = None
    accuracy_score: Optional[Decimal] = Field(None, ge=0, le=100)
    actual_quantity_ordered: Optional[int] = Field(None, ge=0)
    actual_cost: Optional[Decimal] = Field(None, ge=0)


# ── Policies ─────────────────────────────────────────────────────────────────

class ReorderPolicyBase(BaseModel):
    min_stock_multiplier: Decimal = Field(Decimal("1.0"), ge=0)
    safety_stock_days: int = Field(7, ge=0, le=365)
    max_order_quantity: Optional[int] = Field(None, ge=1)
    preferred_order_quantity: Optional[int] = Field(None, ge=1)
    review_frequency_days: int = Field(7, ge=1, le=365)
    auto_approve_threshold: Optional[Decimal] = Field(None, ge=0, le=100)


class ReorderPolicyCreate(ReorderPolicyBase):
    scope_type: str = Field(..., pattern="^(global|category|supplier|product)$")
    scope_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_scope(self):
        if self.scope_type == "global" and self.scope_id is not None:
            raise ValueError("scope_id must be empty for the global policy")
        if self.scope_type != "global" and self.scope_id is None:
            raise ValueError(f"scope_id is required for {self.scope_type} policies")
        if (
            self.max_order_quantity is not None
            and self.preferred_order_quantity is not None
            and self.preferred_order_quantity > self.max_order_quantity
        ):
            raise ValueError("preferred_order_quantity cannot exceed max_order_quantity")
        return self


class ReorderPolicyUpdate(BaseModel):
    min_stock_multiplier: Optional[Decimal] = Field(None, ge=0)
    safety_stock_days: Optional[int] = Field(None, ge=0, le=365)
    max_order_quantity: Optional[int] = Field(None, ge=1)
    preferred_order_quantity: Optional[int] = Field(None, ge=1)
    review_frequency_days: Optional[int] = Field(None, ge=1, le=365)
    auto_approve_threshold: Optional[Decimal] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


class ReorderPolicyResponse(ReorderPolicyBase):
    id: int
    scope_type: str
    scope_id: Optional[int] = None
    is_active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ── Settings ─────────────────────────────────────────────────────────────────

class ReorderSettingsResponse(BaseModel):
    auto_reorder_enabled: bool
    analysis_frequency_hours: int
    default_confidence_threshold: float
    max_auto_approve_amount: Decimal
    notification_email: Optional[str] = None
    slack_webhook_url: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class ReorderSettingsUpdate(BaseModel):
    auto_reorder_enabled: Optional[bool] = None
    analysis_frequency_hours: Optional[int] = Field(None, ge=1, le=720)
    default_confidence_threshold: Optional[float] = Field(None, ge=0, le=100)
    max_auto_approve_amount: Optional[Decimal] = Field(None, ge=0)
    notification_email: Optional[str] = Field(None, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    slack_webhook_url: Optional[str] = Field(None, max_length=500, pattern=r"^https://")

    @model_validator(mode="after")
    def reject_cleared_required_fields(self):
        # notification targets may be cleared with null, the rest may not
        cleared = sorted(
            name for name in self.model_fields_set
            if name not in ("notification_email", "slack_webhook_url") and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


# ── Analysis jobs ────────────────────────────────────────────────────────────

class AnalyzeRequest(BaseModel):
    scope: str = Field("all", pattern="^(all|category|supplier|product)$")
    target_id: Optional[int] = None
    urgency_only: bool = False

    @model_validator(mode="after")
    def validate_target(self):
        if self.scope != "all" and self.target_id is None:
            raise ValueError(f"target_id is required for scope '{self.scope}'")
        if self.scope == "all":
            self.target_id = None
        return self


class AnalyzeResponse(BaseModel):
    jobId: str
    estimatedCompletion: Optional[datetime] = None
    status: str


class AnalysisJobResponse(BaseModel):
    job_id: str
    scope: str
    target_id: Optional[int] = None
    urgency_only: bool
    status: str
    requested_by: Optional[str] = None
    products_count: Optional[int] = None
    processed_count: int = 0
    failed_count: int = 0
    suggestions_count: Optional[int] = None
    auto_approved_count: int = 0
    estimated_completion: Optional[datetime] = None
    error: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AnalysisJobCleanupRequest(BaseModel):
    retention_days: Optional[int] = Field(None, ge=1, le=3650)


# ── Forecast ─────────────────────────────────────────────────────────────────

class DemandForecastResponse(BaseModel):
    product_id: Optional[int] = None
    horizon_days: int
    avg_daily_demand: float
    trend_factor: float
    trend_direction: str
    seasonality_factor: float
    forecasted_demand: List[float]
    confidence_score: float
    days_until_stockout: Optional[int] = None
    computed_at: datetime
    data_points: int
    low_confidence_reason: Optional[str] = None
    data_quality_flags: List[str] = []
    confidence_intervals: Optional[Dict[str, List[float]]] = None
    external_factors: Optional[Dict[str, Any]] = None
    current_stock: Optional[int] = None
    reorder_point: Optional[float] = None


class DemandPatternResponse(BaseModel):
    id: int
    product_id: int
    period_start: date
    period_end: date
    avg_daily_demand: Decimal
    peak_demand: int
    demand_variance: Decimal
    calculated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
