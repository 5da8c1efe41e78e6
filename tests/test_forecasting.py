import random
from datetime import datetime

import pytest

from powerlens.services.forecasting import (
    BASELINE_KWH,
    FALLBACK_MODEL_NAME,
    compute_fallback_forecast,
    confidence_label,
    future_month_labels,
)
from powerlens.services.tariff import calculate_bill, tariff_bracket

NOW = datetime(2024, 11, 5)


def _forecast(history, months, seed=7, now=NOW):
    return compute_fallback_forecast(history, months, now=now, rng=random.Random(seed))


def test_empty_history_yields_baseline_points():
    result = _forecast([], 3)

    assert len(result.predictions) == 3
    for point in result.predictions:
        assert point.predicted_consumption_kwh == BASELINE_KWH
        assert point.predicted_bill_rwf == 445.0
        assert point.tariff_bracket == "0-20 kWh"
        assert point.confidence == "low"
    assert result.trend_percentage == 0


def test_all_zero_history_yields_baseline_points():
    result = _forecast([0, 0, 0, 0], 2)

    assert [p.predicted_consumption_kwh for p in result.predictions] == [5.0, 5.0]
    assert result.trend_percentage == 0


def test_short_series_produces_positive_tariff_consistent_points():
    result = _forecast([10, 20, 30], 2)

    assert len(result.predictions) == 2
    for point in result.predictions:
        assert point.predicted_consumption_kwh > 0
        assert point.predicted_bill_rwf == round(calculate_bill(point.predicted_consumption_kwh), 2)
        assert point.tariff_bracket == tariff_bracket(point.predicted_consumption_kwh)


@pytest.mark.parametrize("seed", range(20))
def test_predictions_stay_positive_for_collapsing_history(seed):
    result = _forecast([90, 60, 30, 5, 1], 6, seed=seed)

    assert all(p.predicted_consumption_kwh > 0 for p in result.predictions)


def test_totals_are_sums_of_emitted_points():
    result = _forecast([12.5, 18.0, 22.4, 19.9, 25.1, 30.2, 28.7], 6)
    n = len(result.predictions)

    consumption = sum(p.predicted_consumption_kwh for p in result.predictions)
    bills = sum(p.predicted_bill_rwf for p in result.predictions)
    assert result.total_forecasted_consumption == pytest.approx(consumption, abs=0.01 * n)
    assert result.total_forecasted_bill == pytest.approx(bills, abs=0.01 * n)
    assert result.average_monthly_consumption == pytest.approx(consumption / n, abs=0.01)


@pytest.mark.parametrize("length, label", [(0, "low"), (5, "low"), (6, "low-medium"), (11, "low-medium"), (12, "medium")])
def test_confidence_depends_on_history_length(length, label):
    assert confidence_label(length) == label
    history = [15.0 + i for i in range(length)]
    assert {p.confidence for p in _forecast(history, 2).predictions} == {label}


def test_flat_history_stays_within_seasonal_ripple():
    result = _forecast([10.0] * 6, 6)

    for point in result.predictions:
        assert 9.4 <= point.predicted_consumption_kwh <= 10.6


def test_full_year_uses_monthly_profile():
    # Two years ending in December; January is four times any other month.
    history = [40.0 if i % 12 == 0 else 10.0 for i in range(24)]
    result = _forecast(history, 2, now=datetime(2024, 12, 15))

    january, february = (p.predicted_consumption_kwh for p in result.predictions)
    assert january > 3 * february


def test_trend_direction_and_percentage():
    rising = _forecast([10, 20, 30], 2)
    assert rising.trend == "increasing"
    assert rising.trend_percentage > 0

    falling = _forecast([60, 50, 40, 30, 20], 1)
    assert falling.trend == "decreasing"
    assert falling.trend_percentage < 0


def test_result_is_marked_as_local_fallback():
    result = _forecast([10.4549, 20, 30], 3)

    assert result.model_used == FALLBACK_MODEL_NAME
    assert result.forecast_id.startswith("local-")
    assert len(result.forecast_id) == len("local-") + 6
    assert result.status == "success"
    assert result.forecast_months == 3
    assert result.historical_data == [10.45, 20.0, 30.0]


def test_month_labels_roll_over_the_year():
    assert future_month_labels(3, NOW) == ["December 2024", "January 2025", "February 2025"]
    assert [p.month for p in _forecast([10, 11, 12], 3).predictions] == future_month_labels(3, NOW)


def test_same_seed_is_reproducible():
    history = [14.2, 17.9, 16.3, 21.0]
    assert _forecast(history, 4, seed=3).predictions == _forecast(history, 4, seed=3).predictions


def test_non_finite_history_values_are_ignored():
    result = _forecast([float("nan"), 10.0, float("inf")], 2)

    assert result.historical_data == [10.0]
    assert result.predictions[0].confidence == "low"
    for point in result.predictions:
        assert 0 < point.predicted_consumption_kwh < float("inf")


def test_only_non_finite_history_yields_baseline():
    result = _forecast([float("nan"), float("-inf")], 2)

    assert [p.predicted_consumption_kwh for p in result.predictions] == [BASELINE_KWH, BASELINE_KWH]
    assert result.historical_data == []
