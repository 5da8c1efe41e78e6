from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..clients import BackendClient, PredictionApiClient
from ..errors import (
    ForbiddenForRole,
    InvalidInputError,
    RemoteServiceError,
    ServiceUnavailableError,
)
from ..schemas import (
    ApiStatus,
    ApplianceEntry,
    HouseholdData,
    PredictionAppliance,
    PredictionResult,
    Predictions,
)
from ..session import DashboardSession

logger = logging.getLogger(__name__)


def validate_prediction_input(household: HouseholdData, appliances: List[ApplianceEntry]) -> None:
    if not household.is_complete():
        raise InvalidInputError("Please fill in all household details")
    if not appliances:
        raise InvalidInputError("Please add at least one appliance")


def build_prediction_payload(household: HouseholdData, appliances: List[ApplianceEntry]) -> Dict[str, Any]:
    try:
        household_size = int(float(household.household_size))
        budget = float(household.monthly_budget)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError("Household size and monthly budget must be numbers") from exc
    return {
        "appliances": [
            {
                "appliance": a.name,
                "power": a.power,
                "power_unit": "W",
                "hours": a.hours,
                "quantity": a.quantity,
                "usage_days_monthly": a.usage_days,
            }
            for a in appliances
        ],
        "household_info": {
            "region": household.region,
            "income_level": household.income_level,
            "household_size": household_size,
            "budget": budget,
        },
    }


def to_predictions(result: PredictionResult, household: HouseholdData, now: Optional[datetime] = None) -> Predictions:
    now = now or datetime.now(timezone.utc)
    return Predictions(
        id=result.report_id,
        consumption=round(result.total_kwh, 2),
        bill=round(result.total_bill, 2),
        tariff_bracket=result.tariff_bracket,
        budget_status=result.budget_status,
        budget_difference=result.budget_difference,
        message=result.message,
        appliances=[
            PredictionAppliance(
                name=item.appliance,
                consumption=round(item.estimated_kwh, 2),
                bill=round(item.estimated_bill, 2),
                percentage=round(item.percentage, 1),
                power_watts=item.power_watts,
            )
            for item in result.breakdown
        ],
        household_data=household,
        timestamp=now.isoformat(),
        total_kwh=result.total_kwh,
        total_bill=result.total_bill,
        report_id=result.report_id,
        ai_recommendations=result.ai_recommendations,
    )


def check_api_health(client: PredictionApiClient) -> Tuple[ApiStatus, bool]:
    """Return the service status and whether the supervised model is loaded."""
    try:
        data = client.health()
        status = ApiStatus.model_validate(data)
    except (RemoteServiceError, ServiceUnavailableError, ValidationError):
        return ApiStatus(status="offline", message="Cannot connect to API server"), False
    models = status.models or {}
    supervised = models.get("supervised") or {}
    return status, bool(supervised.get("loaded", False))


def _persisted_payload(predictions: Predictions, owner_id: str) -> Dict[str, Any]:
    household = predictions.household_data
    return {
        "id": predictions.id,
        "consumption": predictions.consumption,
        "bill": predictions.bill,
        "tariffBracket": predictions.tariff_bracket,
        "budgetStatus": predictions.budget_status,
        "budgetDifference": predictions.budget_difference,
        "message": predictions.message,
        "appliances": [
            {
                "name": a.name,
                "consumption": a.consumption,
                "bill": a.bill,
                "percentage": a.percentage,
                "powerWatts": a.power_watts,
            }
            for a in predictions.appliances
        ],
        "householdData": {
            "region": household.region,
            "incomeLevel": household.income_level,
            "householdSize": household.household_size,
            "monthlyBudget": household.monthly_budget,
        },
        "timestamp": predictions.timestamp,
        "total_kwh": predictions.total_kwh,
        "total_bill": predictions.total_bill,
        "report_id": predictions.report_id,
        "ownerId": owner_id,
    }


def run_prediction(
    household: HouseholdData,
    appliances: List[ApplianceEntry],
    session: DashboardSession,
    api: PredictionApiClient,
    backend: BackendClient,
) -> Predictions:
    if session.is_admin:
        raise ForbiddenForRole("Prediction accessible to household users only")
    validate_prediction_input(household, appliances)

    status, model_loaded = check_api_health(api)
    if not model_loaded:
        logger.info("Supervised model not reported as loaded (status=%s); calling /predict anyway", status.status)

    payload = build_prediction_payload(household, appliances)
    logger.info("Requesting prediction for %d appliances", len(appliances))
    try:
        result = PredictionResult.model_validate(api.predict(payload))
    except ValidationError as exc:
        raise RemoteServiceError(200, f"Unexpected prediction response: {exc}") from exc
    predictions = to_predictions(result, household)

    try:
        backend.save_prediction(_persisted_payload(predictions, session.household_id))
    except (RemoteServiceError, ServiceUnavailableError) as exc:
        logger.warning("Failed to save prediction/report to backend: %s", exc)

    return predictions
