from app.schemas.reorder import (
    ReorderSuggestionResponse,
    SuggestionSummary,
    SuggestionListResponse,
    SuggestionActionRequest,
    SuggestionModifications,
    BulkApproveRequest,
    BulkRejectRequest,
    BulkActionResult,
    PurchaseOrderResponse,
    ReorderHistoryResponse,
    OutcomeUpdateRequest,
    ReorderPolicyCreate,
    ReorderPolicyUpdate,
    ReorderPolicyResponse,
    ReorderSettingsResponse,
    ReorderSettingsUpdate,
    AnalyzeRequest,
    AnalyzeResponse,
    AnalysisJobResponse,
    AnalysisJobCleanupRequest,
    DemandForecastResponse,
    DemandPatternResponse,
)
