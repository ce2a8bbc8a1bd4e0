from datetime import datetime, timedelta

import pytest

from app.ml.demand_forecaster import (
    INSUFFICIENT_DATA,
    DemandForecaster,
    DemandSample,
    ForecastOptions,
)

AS_OF = datetime(2026, 3, 31, 12, 0)


def daily_samples(values, as_of=AS_OF, product_id=1):
    anchor = as_of.replace(hour=9, minute=0)
    count = len(values)
    return [
        DemandSample(product_id=product_id, timestamp=anchor - timedelta(days=count - 1 - i), quantity=qty)
        for i, qty in enumerate(values)
    ]


@pytest.fixture
def forecaster():
    return DemandForecaster()


class TestBaseline:

    def test_constant_demand(self, forecaster):
        forecast = forecaster.forecast(daily_samples([10] * 60), current_stock=50, as_of=AS_OF)

        assert forecast.avg_daily_demand == pytest.approx(10.0)
        assert forecast.trend_factor == 0.0
        assert forecast.seasonality_factor == pytest.approx(1.0)
        assert forecast.trend_direction == "stable"
        assert forecast.days_until_stockout == 5
        assert len(forecast.forecasted_demand) == 30
        assert all(v == pytest.approx(10.0) for v in forecast.forecasted_demand)
        assert forecast.low_confidence_reason is None
        assert forecast.product_id == 1

    def test_missing_days_count_as_zero_demand(self, forecaster):
        values = [20 if i % 2 == 0 else 0 for i in range(28)]
        samples = [s for s in daily_samples(values) if s.quantity > 0]

        forecast = forecaster.forecast(samples, current_stock=100, as_of=AS_OF)

        assert forecast.data_points == 28
        assert forecast.avg_daily_demand == pytest.approx(10.0)

    def test_samples_after_as_of_are_ignored(self, forecaster):
        samples = daily_samples([10] * 30)
        samples.append(DemandSample(product_id=1, timestamp=AS_OF + timedelta(days=2), quantity=1000))

        forecast = forecaster.forecast(samples, current_stock=50, as_of=AS_OF)

        assert forecast.avg_daily_demand == pytest.approx(10.0)

    def test_horizon_drives_projection_length(self, forecaster):
        options = ForecastOptions(horizon_days=45)
        forecast = forecaster.forecast(daily_samples([4] * 60), current_stock=10, options=options, as_of=AS_OF)
        assert forecast.horizon_days == 45
        assert len(forecast.forecasted_demand) == 45


class TestTrendAndSeasonality:

    def test_increasing_trend(self, forecaster):
        forecast = forecaster.forecast(daily_samples(list(range(1, 61))), current_stock=500, as_of=AS_OF)

        assert forecast.trend_factor > 0
        assert forecast.trend_direction == "increasing"
        assert forecast.forecasted_demand[-1] > forecast.forecasted_demand[0]

    def test_decreasing_trend_never_projects_negative_demand(self, forecaster):
        forecast = forecaster.forecast(daily_samples(list(range(60, 0, -1))), current_stock=500, as_of=AS_OF)

        assert forecast.trend_direction == "decreasing"
        assert min(forecast.forecasted_demand) >= 0

    def test_seasonality_is_clamped(self, forecaster):
        forecast = forecaster.forecast(daily_samples([1] * 14 + [10] * 7), current_stock=100, as_of=AS_OF)
        assert forecast.seasonality_factor == 2.0

        forecast = forecaster.forecast(daily_samples([10] * 14 + [1] * 7), current_stock=100, as_of=AS_OF)
        assert forecast.seasonality_factor == 0.5

    def test_seasonality_can_be_disabled(self, forecaster):
        options = ForecastOptions(include_seasonality=False)
        forecast = forecaster.forecast(
            daily_samples([1] * 14 + [10] * 7), current_stock=100, options=options, as_of=AS_OF
        )
        assert forecast.seasonality_factor == 1.0

    def test_seasonality_needs_two_cycles(self, forecaster):
        forecast = forecaster.forecast(daily_samples([1] * 6 + [10] * 7), current_stock=100, as_of=AS_OF)
        assert forecast.seasonality_factor == 1.0


class TestStockout:

    def test_zero_demand_never_stocks_out(self, forecaster):
        forecast = forecaster.forecast(daily_samples([0] * 30), current_stock=10, as_of=AS_OF)
        assert forecast.days_until_stockout is None
        assert "zero_demand" in forecast.data_quality_flags

    def test_empty_shelf_is_already_out(self, forecaster):
        forecast = forecaster.forecast(daily_samples([5] * 30), current_stock=0, as_of=AS_OF)
        assert forecast.days_until_stockout == 0

    def test_stockout_beyond_horizon_is_still_reported(self, forecaster):
        forecast = forecaster.forecast(daily_samples([1] * 30), current_stock=100, as_of=AS_OF)
        assert forecast.days_until_stockout == 100


class TestConfidence:

    def test_sparse_history_is_flagged_not_raised(self, forecaster):
        forecast = forecaster.forecast(daily_samples([10, 12, 9]), current_stock=50, as_of=AS_OF)

        assert forecast.confidence_score <= 20
        assert forecast.low_confidence_reason == INSUFFICIENT_DATA
        assert forecast.is_low_confidence

    def test_no_history_uses_fallback_demand(self, forecaster):
        forecast = forecaster.forecast([], current_stock=5, as_of=AS_OF, product_id=9)

        assert forecast.product_id == 9
        assert forecast.avg_daily_demand == 1.0
        assert forecast.confidence_score == 10.0
        assert forecast.days_until_stockout == 5
        assert forecast.low_confidence_reason == INSUFFICIENT_DATA
        assert "no_history" in forecast.data_quality_flags

    def test_lower_variance_scores_higher(self, forecaster):
        steady = forecaster.forecast(daily_samples([10] * 60), current_stock=50, as_of=AS_OF)
        noisy = forecaster.forecast(daily_samples([0, 20] * 30), current_stock=50, as_of=AS_OF)
        assert steady.confidence_score > noisy.confidence_score

    def test_more_history_scores_higher(self, forecaster):
        short = forecaster.forecast(daily_samples([10] * 14), current_stock=50, as_of=AS_OF)
        long = forecaster.forecast(daily_samples([10] * 120), current_stock=50, as_of=AS_OF)
        assert long.confidence_score > short.confidence_score

    def test_confidence_stays_within_bounds(self, forecaster):
        for values in ([10] * 365, [0, 50] * 10, [3] * 8):
            forecast = forecaster.forecast(daily_samples(values), current_stock=50, as_of=AS_OF)
            assert 10 <= forecast.confidence_score <= 95


class TestOptionalOutputs:

    def test_confidence_intervals_bracket_forecast(self, forecaster):
        options = ForecastOptions(horizon_days=14, include_confidence_intervals=True)
        forecast = forecaster.forecast(daily_samples([5, 15] * 30), current_stock=50, options=options, as_of=AS_OF)

        lower = forecast.confidence_intervals["lower"]
        upper = forecast.confidence_intervals["upper"]
        assert len(lower) == len(upper) == 14
        for lo, mid, hi in zip(lower, forecast.forecasted_demand, upper):
            assert 0 <= lo <= mid <= hi

    def test_external_factors_detect_holidays_in_horizon(self, forecaster):
        options = ForecastOptions(horizon_days=30, include_external_factors=True)

        december = forecaster.forecast(
            daily_samples([10] * 60, as_of=datetime(2026, 12, 1, 12)), 50, options=options, as_of=datetime(2026, 12, 1, 12)
        )
        february = forecaster.forecast(
            daily_samples([10] * 60, as_of=datetime(2026, 2, 1, 12)), 50, options=options, as_of=datetime(2026, 2, 1, 12)
        )

        assert december.external_factors["holidays"] is True
        assert february.external_factors["holidays"] is False
        assert december.external_factors["market_trend"] == pytest.approx(1.0)

    def test_optional_outputs_absent_by_default(self, forecaster):
        forecast = forecaster.forecast(daily_samples([10] * 30), current_stock=50, as_of=AS_OF)
        assert forecast.confidence_intervals is None
        assert forecast.external_factors is None

    def test_to_dict_is_json_friendly(self, forecaster):
        payload = forecaster.forecast([], current_stock=0, as_of=AS_OF).to_dict()
        assert payload["days_until_stockout"] == 0
        assert payload["computed_at"] == AS_OF.isoformat()
