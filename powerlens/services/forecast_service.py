from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..clients import PredictionApiClient
from ..errors import (
    ForbiddenForRole,
    InsufficientHistoryError,
    RemoteServiceError,
    ServiceUnavailableError,
)
from ..schemas import ForecastResult, Report
from ..session import DashboardSession
from ..settings import settings
from .calculations import historical_series
from .forecasting import compute_fallback_forecast

logger = logging.getLogger(__name__)


def _sarima_available(client: PredictionApiClient) -> Optional[bool]:
    try:
        status = client.timeseries_status()
    except (RemoteServiceError, ServiceUnavailableError) as exc:
        logger.warning("Could not fetch timeseries status, proceeding with default payload: %s", exc)
        return None
    section = status.get("time_series_forecasting") if isinstance(status, dict) else None
    if isinstance(section, dict) and "sarima_available" in section:
        return bool(section["sarima_available"])
    return None


def build_forecast_payload(reports: List[Report], history: List[float], months_ahead: int) -> Dict[str, Any]:
    household = reports[0].household_data.model_dump() if reports else {}
    # Both horizon keys: forecast services accept one or the other
    return {
        "historical_data": history,
        "months_ahead": months_ahead,
        "forecast_months": months_ahead,
        "household_info": household,
        "householdData": household,
    }


def _remote_forecast(client: PredictionApiClient, payload: Dict[str, Any]) -> ForecastResult:
    data = client.timeseries_forecast(payload)
    try:
        return ForecastResult.model_validate(data)
    except ValidationError as exc:
        raise RemoteServiceError(200, f"Unexpected forecast response: {exc}") from exc


def request_forecast(
    reports: List[Report],
    session: DashboardSession,
    client: PredictionApiClient,
    months_ahead: Optional[int] = None,
) -> ForecastResult:
    """Forecast with the remote time-series service, falling back to the local forecaster.

    A response mentioning SARIMA is retried once with ``model="auto"``. Any
    other failure, including timeouts, switches to the local forecast over
    the same history.
    """
    if session.is_admin:
        raise ForbiddenForRole("Forecasting is available to household users only")
    required = settings.min_reports_for_forecast
    if len(reports) < required:
        raise InsufficientHistoryError(
            f"You need at least {required} energy usage records to predict future patterns. "
            f"You have {len(reports)}.",
            available=len(reports),
            required=required,
        )

    months_ahead = months_ahead or settings.forecast_months
    history = historical_series(reports)
    payload = build_forecast_payload(reports, history, months_ahead)
    if _sarima_available(client) is False:
        payload = {**payload, "model": "auto"}

    try:
        return _remote_forecast(client, payload)
    except ServiceUnavailableError as exc:
        logger.warning("Forecast service unreachable; using client-side fallback forecast: %s", exc)
    except RemoteServiceError as exc:
        logger.error("Forecast API error %s: %s", exc.status_code, exc.message)
        if "sarima" in (exc.message or "").lower():
            logger.warning("SARIMA model not available, retrying forecast request with model:auto")
            try:
                return _remote_forecast(client, {**payload, "model": "auto"})
            except (RemoteServiceError, ServiceUnavailableError) as retry_exc:
                logger.error("Retry forecast failed: %s", retry_exc)
        else:
            logger.warning("Server returned error; using client-side fallback forecast")

    return compute_fallback_forecast(history, months_ahead)
