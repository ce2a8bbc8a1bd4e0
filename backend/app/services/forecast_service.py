"""
Forecast Service: Service Layer (SRP / DIP)
Wires the catalog read boundary to the demand forecaster and maintains the
monthly demand pattern aggregates.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from app.config import settings
from app.ml.demand_forecaster import DemandForecast, DemandForecaster, ForecastOptions, ForecasterConfig
from app.models.demand_pattern import DemandPattern
from app.repositories.catalog_repository import CatalogReader
from app.repositories.demand_pattern_repository import DemandPatternRepository
from app.services.policy_service import resolve_policy
from app.services.suggestion_generator import compute_reorder_point

logger = logging.getLogger(__name__)


def build_forecaster() -> DemandForecaster:
    return DemandForecaster(ForecasterConfig.from_settings(settings))


class ForecastService:

    def __init__(self, db: Session, forecaster: Optional[DemandForecaster] = None):
        self._db = db
        self._catalog = CatalogReader(db)
        self._pattern_repo = DemandPatternRepository(db)
        self._forecaster = forecaster or build_forecaster()

    def forecast(
        self,
        product_id: int,
        current_stock: int,
        options: Optional[ForecastOptions] = None,
        as_of: Optional[datetime] = None,
    ) -> DemandForecast:
        as_of = as_of or datetime.utcnow()
        since = as_of - timedelta(days=settings.FORECAST_HISTORY_DAYS)
        samples = self._catalog.read_demand_history(product_id, since)
        return self._forecaster.forecast(
            samples,
            current_stock=current_stock,
            options=options,
            as_of=as_of,
            product_id=product_id,
        )

    def forecast_product(
        self,
        product_id: int,
        options: Optional[ForecastOptions] = None,
        as_of: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """On-demand forecast for one product, with the reorder point its policy implies."""
        product = self._catalog.get_product(product_id)
        current_stock = self._catalog.read_current_stock(product_id)
        forecast = self.forecast(product_id, current_stock, options=options, as_of=as_of)

        policy = resolve_policy(self._catalog.read_active_policies(), product.id, product.category_id, product.supplier_id)
        lead_time = self._catalog.read_supplier_lead_time(product.supplier_id)

        payload = forecast.to_dict()
        payload["current_stock"] = current_stock
        payload["reorder_point"] = round(compute_reorder_point(forecast.avg_daily_demand, lead_time, policy), 2)
        logger.info(
            "demand_forecast_computed product_id=%s confidence=%s days_until_stockout=%s",
            product_id,
            forecast.confidence_score,
            forecast.days_until_stockout,
        )
        return payload

    def refresh_demand_patterns(self, product_id: int, months: int = 12, as_of: Optional[datetime] = None) -> List[DemandPattern]:
        """Recompute monthly demand aggregates for the trailing ``months`` calendar months."""
        self._catalog.get_product(product_id)
        as_of = as_of or datetime.utcnow()
        window_start = (as_of.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
                        - relativedelta(months=months - 1))
        samples = self._catalog.read_demand_history(product_id, window_start)
        daily = self._forecaster.to_daily_series(samples, as_of)
        if daily.empty:
            return []

        by_month = daily.groupby(daily.index.to_period("M"))
        refreshed: List[DemandPattern] = []
        for period, values in by_month:
            period_start = period.start_time.date()
            period_end = period.end_time.date()
            stats = {
                "avg_daily_demand": Decimal(str(round(float(values.mean()), 4))),
                "peak_demand": int(values.max()),
                "demand_variance": Decimal(str(round(float(values.var(ddof=0)) if len(values) else 0.0, 4))),
                "calculated_at": as_of,
            }
            existing = self._pattern_repo.get_for_period(product_id, period_start, period_end)
            if existing:
                refreshed.append(self._pattern_repo.update(existing, stats, commit=False))
            else:
                refreshed.append(self._pattern_repo.add(DemandPattern(
                    product_id=product_id,
                    period_start=period_start,
                    period_end=period_end,
                    **stats,
                )))
        self._db.commit()
        logger.info("demand_patterns_refreshed product_id=%s periods=%s", product_id, len(refreshed))
        return refreshed

    def list_demand_patterns(self, product_id: int) -> List[DemandPattern]:
        return self._pattern_repo.list_by_product(product_id)
