# Repository Layer: Data Access (Repository Pattern, GoF)
from app.repositories.base import BaseRepository
from app.repositories.catalog_repository import CatalogReader
from app.repositories.reorder_policy_repository import ReorderPolicyRepository
from app.repositories.reorder_suggestion_repository import ReorderSuggestionRepository
from app.repositories.reorder_history_repository import ReorderHistoryRepository
from app.repositories.purchase_order_repository import PurchaseOrderRepository
from app.repositories.demand_pattern_repository import DemandPatternRepository
from app.repositories.analysis_job_repository import AnalysisJobRepository

__all__ = [
    "BaseRepository",
    "CatalogReader",
    "ReorderPolicyRepository",
    "ReorderSuggestionRepository",
    "ReorderHistoryRepository",
    "PurchaseOrderRepository",
    "DemandPatternRepository",
    "AnalysisJobRepository",
]
