"""
Demand Forecaster

Turns a product's consumption history into a forward-looking daily demand
forecast:

1. resample samples to daily buckets, zero-filling days without sales
2. trailing-window mean as the demand baseline
3. least-squares slope over the window, normalised to a per-day fractional rate
4. weekly seasonality ratio (current cycle vs previous cycle), clamped
5. projection ``avg * seasonality * (1 + trend * i)`` floored at zero
6. first day cumulative projected demand covers current stock
7. confidence from history length and coefficient of variation

Sparse history never raises: it degrades the confidence score and flags the
forecast so callers can treat it conservatively.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from math import exp
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

INSUFFICIENT_DATA = "insufficient_data"
STABLE_TREND_THRESHOLD = 0.01
STOCKOUT_SEARCH_LIMIT_DAYS = 3650
CONFIDENCE_INTERVAL_Z = 1.96
MARKET_TREND_WINDOW_DAYS = 30
# (month, day) of fixed-date demand spikes checked by the external factor scan
HOLIDAYS = ((1, 1), (7, 4), (10, 31), (12, 25))


@dataclass(frozen=True)
class DemandSample:
    product_id: int
    timestamp: datetime
    quantity: int


@dataclass
class ForecastOptions:
    horizon_days: int = 30
    include_confidence_intervals: bool = False
    include_seasonality: bool = True
    include_external_factors: bool = False


@dataclass
class ForecasterConfig:
    min_samples: int = 7
    window_min_days: int = 28
    seasonality_cycle_days: int = 7
    seasonality_min: float = 0.5
    seasonality_max: float = 2.0
    confidence_floor: float = 10.0
    confidence_ceiling: float = 95.0
    insufficient_confidence_cap: float = 20.0
    fallback_daily_demand: float = 1.0

    @classmethod
    def from_settings(cls, settings) -> "ForecasterConfig":
        return cls(
            min_samples=settings.FORECAST_MIN_SAMPLES,
            window_min_days=settings.FORECAST_WINDOW_MIN_DAYS,
            seasonality_cycle_days=settings.FORECAST_SEASONALITY_CYCLE_DAYS,
            seasonality_min=settings.FORECAST_SEASONALITY_MIN,
            seasonality_max=settings.FORECAST_SEASONALITY_MAX,
            confidence_floor=settings.FORECAST_CONFIDENCE_FLOOR,
            confidence_ceiling=settings.FORECAST_CONFIDENCE_CEILING,
            insufficient_confidence_cap=settings.FORECAST_INSUFFICIENT_CONFIDENCE_CAP,
            fallback_daily_demand=settings.FORECAST_FALLBACK_DAILY_DEMAND,
        )


@dataclass
class DemandForecast:
    product_id: Optional[int]
    horizon_days: int
    avg_daily_demand: float
    trend_factor: float
    seasonality_factor: float
    forecasted_demand: List[float]
    confidence_score: float
    # None means no stockout is projected (demand persistently zero)
    days_until_stockout: Optional[int]
    computed_at: datetime
    trend_direction: str = "stable"
    data_points: int = 0
    low_confidence_reason: Optional[str] = None
    data_quality_flags: List[str] = field(default_factory=list)
    confidence_intervals: Optional[Dict[str, List[float]]] = None
    external_factors: Optional[Dict[str, Any]] = None

    @property
    def is_low_confidence(self) -> bool:
        return self.low_confidence_reason is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "horizon_days": self.horizon_days,
            "avg_daily_demand": round(self.avg_daily_demand, 4),
            "trend_factor": round(self.trend_factor, 6),
            "trend_direction": self.trend_direction,
            "seasonality_factor": round(self.seasonality_factor, 4),
            "forecasted_demand": [round(v, 2) for v in self.forecasted_demand],
            "confidence_score": round(self.confidence_score, 2),
            "days_until_stockout": self.days_until_stockout,
            "computed_at": self.computed_at.isoformat(),
            "data_points": self.data_points,
            "low_confidence_reason": self.low_confidence_reason,
            "data_quality_flags": list(self.data_quality_flags),
            "confidence_intervals": self.confidence_intervals,
            "external_factors": self.external_factors,
        }


class DemandForecaster:
    """Trailing-mean forecaster with linear trend and weekly seasonality."""

    def __init__(self, config: Optional[ForecasterConfig] = None):
        self.config = config or ForecasterConfig()

    def forecast(
        self,
        samples: Sequence[DemandSample],
        current_stock: float,
        options: Optional[ForecastOptions] = None,
        as_of: Optional[datetime] = None,
        product_id: Optional[int] = None,
    ) -> DemandForecast:
        options = options or ForecastOptions()
        horizon = max(1, int(options.horizon_days))
        as_of = as_of or datetime.utcnow()
        if product_id is None and samples:
            product_id = samples[0].product_id

        daily = self.to_daily_series(samples, as_of)
        window = max(self.config.window_min_days, horizon)
        recent = daily.tail(window)
        flags: List[str] = []

        if daily.empty:
            avg = float(self.config.fallback_daily_demand)
            trend = 0.0
            seasonality = 1.0
            flags.append("no_history")
        else:
            avg = float(recent.mean())
            trend = self._trend_factor(recent, avg)
            seasonality = self._seasonality_factor(daily) if options.include_seasonality else 1.0
            if avg == 0:
                flags.append("zero_demand")

        low_confidence_reason = None
        if len(samples) < self.config.min_samples:
            low_confidence_reason = INSUFFICIENT_DATA
            flags.append("short_history")
            # A slope or cycle ratio over a handful of points is noise.
            trend = 0.0
            seasonality = 1.0

        confidence = self._confidence(recent, avg, len(daily))
        if low_confidence_reason:
            confidence = min(confidence, self.config.insufficient_confidence_cap)

        forecasted = self._project(avg, trend, seasonality, horizon)
        forecast = DemandForecast(
            product_id=product_id,
            horizon_days=horizon,
            avg_daily_demand=avg,
            trend_factor=trend,
            seasonality_factor=seasonality,
            forecasted_demand=forecasted,
            confidence_score=round(confidence, 2),
            days_until_stockout=self._days_until_stockout(current_stock, avg * seasonality, trend),
            computed_at=as_of,
            trend_direction=self._trend_direction(trend),
            data_points=len(daily),
            low_confidence_reason=low_confidence_reason,
            data_quality_flags=flags,
        )

        if options.include_confidence_intervals:
            forecast.confidence_intervals = self._confidence_intervals(forecasted, recent)
        if options.include_external_factors:
            forecast.external_factors = self._external_factors(daily, as_of, horizon)
        return forecast

    # ── Series preparation ──────────────────────────────────────────────────

    def to_daily_series(self, samples: Sequence[DemandSample], as_of: datetime) -> pd.Series:
        """Daily demand from the first sample through ``as_of``; missing days are zero."""
        if not samples:
            return pd.Series(dtype=float)

        end = _naive(as_of)
        frame = pd.DataFrame(
            {
                "ds": [_naive(s.timestamp) for s in samples],
                "y": [float(s.quantity) for s in samples],
            }
        )
        frame = frame[frame["ds"] <= end]
        if frame.empty:
            return pd.Series(dtype=float)

        series = frame.set_index("ds")["y"].resample("D").sum()
        full_range = pd.date_range(series.index.min().normalize(), end.normalize(), freq="D")
        return series.reindex(full_range, fill_value=0.0).astype(float)

    # ── Components ──────────────────────────────────────────────────────────

    def _trend_factor(self, recent: pd.Series, avg: float) -> float:
        if len(recent) < 2 or avg <= 0:
            return 0.0
        x = np.arange(len(recent), dtype=float)
        slope = float(np.polyfit(x, recent.values, 1)[0])
        # polyfit leaves ~1e-16 residue on flat series
        return round(slope / avg, 6) + 0.0

    def _seasonality_factor(self, daily: pd.Series) -> float:
        cycle = self.config.seasonality_cycle_days
        if len(daily) < 2 * cycle:
            return 1.0
        current = float(daily.iloc[-cycle:].mean())
        previous = float(daily.iloc[-2 * cycle:-cycle].mean())
        if previous <= 0:
            return 1.0 if current <= 0 else self.config.seasonality_max
        ratio = current / previous
        return max(self.config.seasonality_min, min(self.config.seasonality_max, ratio))

    def _project(self, avg: float, trend: float, seasonality: float, horizon: int) -> List[float]:
        base = avg * seasonality
        return [max(0.0, base * (1 + trend * i)) for i in range(1, horizon + 1)]

    def _days_until_stockout(self, current_stock: float, base: float, trend: float) -> Optional[int]:
        if current_stock <= 0:
            return 0
        if base <= 0:
            return None
        cumulative = 0.0
        for day in range(1, STOCKOUT_SEARCH_LIMIT_DAYS + 1):
            demand = max(0.0, base * (1 + trend * day))
            if demand <= 0 and trend <= 0:
                return None
            cumulative += demand
            if cumulative >= current_stock:
                return day
        return None

    def _confidence(self, recent: pd.Series, avg: float, data_points: int) -> float:
        floor = self.config.confidence_floor
        ceiling = self.config.confidence_ceiling
        if data_points == 0:
            return floor

        data_score = 1 - exp(-data_points / 30.0)
        if avg > 0 and len(recent) > 1:
            cv = float(recent.std(ddof=0)) / avg
            variance_score = 1 / (1 + cv)
        else:
            variance_score = 0.5
        score = floor + (ceiling - floor) * data_score * variance_score
        return max(floor, min(ceiling, score))

    def _trend_direction(self, trend: float) -> str:
        if abs(trend) < STABLE_TREND_THRESHOLD:
            return "stable"
        return "increasing" if trend > 0 else "decreasing"

    def _confidence_intervals(self, forecasted: List[float], recent: pd.Series) -> Dict[str, List[float]]:
        std = float(recent.std(ddof=0)) if len(recent) > 1 else 0.0
        margin = CONFIDENCE_INTERVAL_Z * std
        return {
            "lower": [round(max(0.0, v - margin), 2) for v in forecasted],
            "upper": [round(v + margin, 2) for v in forecasted],
        }

    def _external_factors(self, daily: pd.Series, as_of: datetime, horizon: int) -> Dict[str, Any]:
        start = as_of.date()
        end = start + timedelta(days=horizon)
        holidays = any(
            start < date(year, month, day) <= end
            for year in (start.year, start.year + 1)
            for month, day in HOLIDAYS
        )

        market_trend = 1.0
        span = MARKET_TREND_WINDOW_DAYS
        if len(daily) >= 2 * span:
            recent_total = float(daily.iloc[-span:].sum())
            previous_total = float(daily.iloc[-2 * span:-span].sum())
            if previous_total > 0:
                market_trend = round(recent_total / previous_total, 4)

        return {"holidays": holidays, "market_trend": market_trend}


def _naive(value: datetime) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts
