from app.models.product import Product, Category, Supplier
from app.models.demand_sample import DemandSampleRecord
from app.models.demand_pattern import DemandPattern
from app.models.reorder_policy import ReorderPolicy
from app.models.reorder_suggestion import ReorderSuggestion
from app.models.reorder_history import ReorderHistory
from app.models.reorder_settings import ReorderSettingsRecord
from app.models.analysis_job import AnalysisJob
from app.models.purchase_order import PurchaseOrder

__all__ = [
    "Product",
    "Category",
    "Supplier",
    "DemandSampleRecord",
    "DemandPattern",
    "ReorderPolicy",
    "ReorderSuggestion",
    "ReorderHistory",
    "ReorderSettingsRecord",
    "AnalysisJob",
    "PurchaseOrder",
]
