"""
Suggestion Generator

Pure decision function: current stock + demand forecast + resolved policy
→ a reorder suggestion draft, or ``None`` when stock already covers the
reorder point. Nothing here touches the database.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from math import ceil
from typing import List, Optional

from app.config import settings
from app.ml.demand_forecaster import DemandForecast

URGENCY_LEVELS = ("critical", "high", "medium", "low")
SEASONAL_INCREASE_THRESHOLD = 1.1


@dataclass(frozen=True)
class UrgencyThresholds:
    high_multiplier: float = 1.5
    medium_multiplier: float = 3.0

    @classmethod
    def from_settings(cls) -> "UrgencyThresholds":
        return cls(
            high_multiplier=settings.URGENCY_HIGH_MULTIPLIER,
            medium_multiplier=settings.URGENCY_MEDIUM_MULTIPLIER,
        )


@dataclass
class SuggestionDraft:
    product_id: int
    supplier_id: Optional[int]
    suggested_quantity: int
    estimated_cost: Decimal
    urgency: str
    confidence_score: float
    reason: str
    lead_time_days: int
    reorder_point: float
    low_confidence: bool = False


def compute_reorder_point(avg_daily_demand: float, lead_time_days: int, policy) -> float:
    return (
        float(avg_daily_demand)
        * (lead_time_days + int(policy.safety_stock_days))
        * float(policy.min_stock_multiplier)
    )


def classify_urgency(
    days_until_stockout: Optional[int],
    lead_time_days: int,
    thresholds: Optional[UrgencyThresholds] = None,
) -> str:
    """Tier by days-until-stockout relative to lead time; no projected stockout is ``low``."""
    thresholds = thresholds or UrgencyThresholds.from_settings()
    if days_until_stockout is None:
        return "low"
    if days_until_stockout <= lead_time_days:
        return "critical"
    if days_until_stockout <= lead_time_days * thresholds.high_multiplier:
        return "high"
    if days_until_stockout <= lead_time_days * thresholds.medium_multiplier:
        return "medium"
    return "low"


def build_reason(current_stock: float, forecast: DemandForecast, policy, lead_time_days: int) -> str:
    reasons: List[str] = []
    days = forecast.days_until_stockout
    if current_stock <= 0:
        reasons.append("Out of stock")
    elif days is not None and days <= lead_time_days:
        reasons.append(f"Predicted stockout in {days} days within {lead_time_days} day lead time")
    if 0 < current_stock <= forecast.avg_daily_demand * int(policy.safety_stock_days):
        reasons.append("Stock below safety threshold")
    if forecast.trend_direction == "increasing":
        reasons.append("Demand trend increasing")
    if forecast.seasonality_factor > SEASONAL_INCREASE_THRESHOLD:
        reasons.append("Seasonal demand increase expected")
    if forecast.is_low_confidence:
        reasons.append("Limited demand history")
    if not reasons:
        reasons.append("Stock below reorder point")
    return "; ".join(reasons)


def generate_suggestion(
    *,
    product_id: int,
    supplier_id: Optional[int],
    current_stock: int,
    forecast: DemandForecast,
    policy,
    unit_price: Decimal,
    lead_time_days: int,
    thresholds: Optional[UrgencyThresholds] = None,
) -> Optional[SuggestionDraft]:
    reorder_point = compute_reorder_point(forecast.avg_daily_demand, lead_time_days, policy)
    if current_stock >= reorder_point:
        return None

    # Rounding first keeps float noise (100.0000000001) from adding a unit.
    quantity = ceil(round(reorder_point - current_stock, 6))
    if policy.preferred_order_quantity and quantity < policy.preferred_order_quantity:
        quantity = int(policy.preferred_order_quantity)
    if policy.max_order_quantity and quantity > policy.max_order_quantity:
        quantity = int(policy.max_order_quantity)
    if quantity <= 0:
        return None

    price = unit_price if isinstance(unit_price, Decimal) else Decimal(str(unit_price))
    estimated_cost = (price * quantity).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    return SuggestionDraft(
        product_id=product_id,
        supplier_id=supplier_id,
        suggested_quantity=quantity,
        estimated_cost=estimated_cost,
        urgency=classify_urgency(forecast.days_until_stockout, lead_time_days, thresholds),
        confidence_score=float(forecast.confidence_score),
        reason=build_reason(current_stock, forecast, policy, lead_time_days),
        lead_time_days=lead_time_days,
        reorder_point=reorder_point,
        low_confidence=forecast.is_low_confidence,
    )
