from __future__ import annotations

import math
import random
import time
from datetime import datetime
from typing import List, Optional, Sequence

from ..schemas import ForecastPoint, ForecastResult
from .tariff import calculate_bill, tariff_bracket

BASELINE_KWH = 5.0
FALLBACK_MODEL_NAME = "client_fallback"


def _finite_samples(values: Sequence[float]) -> List[float]:
    # NaN, infinities and non-numeric entries carry no usable signal
    samples = []
    for value in values:
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            samples.append(number)
    return samples


def _mean_and_stddev(values: Sequence[float]) -> tuple[float, float]:
    n = len(values)
    if n == 0:
        return 0.0, 0.0
    mean = sum(values) / n
    variance = sum((v - mean) ** 2 for v in values) / n
    return mean, math.sqrt(variance)


def _linear_trend(y_values: Sequence[float], mean_y: float) -> tuple[float, float]:
    # OLS for y = a + b*x with x = 0..n-1
    n = len(y_values)
    mean_x = (n - 1) / 2
    ss_xy = sum((x - mean_x) * (y - mean_y) for x, y in enumerate(y_values))
    ss_xx = sum((x - mean_x) ** 2 for x in range(n)) or 1.0
    slope = ss_xy / ss_xx
    intercept = mean_y - slope * mean_x
    return intercept, slope


def _monthly_profile(y_values: Sequence[float], now: datetime) -> List[Optional[float]]:
    # Samples are assumed to be consecutive months ending with the current one.
    totals = [0.0] * 12
    counts = [0] * 12
    n = len(y_values)
    for i, value in enumerate(y_values):
        month_index = (now.month - 1 - (n - 1 - i)) % 12
        totals[month_index] += value
        counts[month_index] += 1
    return [totals[m] / counts[m] if counts[m] else None for m in range(12)]


def confidence_label(history_length: int) -> str:
    if history_length >= 12:
        return "medium"
    if history_length >= 6:
        return "low-medium"
    return "low"


def future_month_labels(months_ahead: int, now: datetime) -> List[str]:
    labels = []
    year, month = now.year, now.month
    for _ in range(months_ahead):
        month += 1
        if month > 12:
            month = 1
            year += 1
        labels.append(datetime(year, month, 1).strftime("%B %Y"))
    return labels


def _predict_consumption(
    y_values: Sequence[float], months_ahead: int, now: datetime, rng: random.Random
) -> List[float]:
    n = len(y_values)
    mean, stddev = _mean_and_stddev(y_values)
    if n == 0 or mean == 0:
        return [BASELINE_KWH for _ in range(months_ahead)]

    intercept, slope = _linear_trend(y_values, mean)
    profile = _monthly_profile(y_values, now) if n >= 12 else None
    noise_scale = stddev or max(1.0, mean * 0.1)
    floor = max(0.1, mean * 0.05)

    preds: List[float] = []
    for i in range(months_ahead):
        t = n + i
        trend_value = intercept + slope * t

        if profile is not None:
            month_avg = profile[(now.month + i) % 12]
            seasonal_factor = (month_avg if month_avg else mean) / mean or 1.0
        else:
            seasonal_factor = 1 + 0.05 * math.sin(t * math.pi / 6)

        noise = noise_scale * (rng.random() * 0.1 - 0.05)
        value = max(0.0, trend_value * seasonal_factor + noise)
        if not math.isfinite(value) or value <= 0:
            value = mean * (1 + 0.02 * (i + 1))
        value = max(value, floor)
        if not math.isfinite(value):
            value = floor if math.isfinite(floor) else BASELINE_KWH
        preds.append(round(value, 2))
    return preds


def compute_fallback_forecast(
    historical_data: Sequence[float],
    months_ahead: int = 3,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> ForecastResult:
    """Project monthly consumption and bills without the remote forecasting service.

    Linear trend over the month index, scaled by a seasonal factor (monthly
    profile when a full year of history exists, a 5% ripple otherwise), with a
    small noise term drawn from the history's spread. Degenerate history yields
    a flat baseline. Never raises.
    """
    now = now or datetime.now()
    rng = rng or random.Random()
    y_values = _finite_samples(historical_data)
    n = len(y_values)
    months_ahead = max(1, int(months_ahead))

    preds = _predict_consumption(y_values, months_ahead, now, rng)
    bills = [round(calculate_bill(p), 2) for p in preds]
    confidence = confidence_label(n)
    labels = future_month_labels(months_ahead, now)

    points = [
        ForecastPoint(
            month=labels[i],
            predicted_consumption_kwh=p,
            predicted_bill_rwf=bills[i],
            tariff_bracket=tariff_bracket(p),
            confidence=confidence,
        )
        for i, p in enumerate(preds)
    ]

    forecast_avg = sum(preds) / len(preds)
    recent = y_values[-3:]
    hist_avg = sum(recent) / len(recent) if recent else 0.0
    trend = "increasing" if forecast_avg > hist_avg else "decreasing"
    trend_percentage = (forecast_avg - hist_avg) / hist_avg * 100 if hist_avg else 0.0
    trend_percentage = round(trend_percentage, 2) if math.isfinite(trend_percentage) else 0.0

    return ForecastResult(
        status="success",
        message="Client-side fallback forecast used (regression + seasonality)",
        historical_data=[round(v, 2) for v in y_values],
        forecast_months=months_ahead,
        predictions=points,
        total_forecasted_consumption=round(sum(preds), 2),
        total_forecasted_bill=round(sum(bills), 2),
        average_monthly_consumption=round(forecast_avg, 2),
        average_monthly_bill=round(sum(bills) / len(bills), 2),
        trend=trend,
        trend_percentage=trend_percentage,
        model_used=FALLBACK_MODEL_NAME,
        forecast_id="local-" + str(int(time.time() * 1000))[-6:],
    )
