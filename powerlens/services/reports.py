from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..clients import BackendClient
from ..errors import RemoteServiceError, ServiceUnavailableError
from ..schemas import HouseholdData, PredictionAppliance, Report
from ..session import DashboardSession

logger = logging.getLogger(__name__)

REPORT_LIMIT = 200


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _household_from(doc: Dict[str, Any]) -> HouseholdData:
    nested = doc.get("householdData")
    if isinstance(nested, dict):
        return HouseholdData.model_validate(nested)
    return HouseholdData(
        region=doc.get("region"),
        income_level=doc.get("income_level"),
        household_size=doc.get("household_size"),
        monthly_budget=doc.get("budget"),
    )


def _appliances_from(doc: Dict[str, Any]) -> List[PredictionAppliance]:
    items = doc.get("appliances") or []
    appliances = []
    for item in items:
        if not isinstance(item, dict):
            continue
        appliances.append(
            PredictionAppliance(
                name=item.get("name") or "Unknown Appliance",
                consumption=_to_float(item.get("consumption")),
                bill=_to_float(item.get("bill")),
                percentage=_to_float(item.get("percentage")),
                power_watts=_to_float(item.get("powerWatts", item.get("power_watts"))),
            )
        )
    return appliances


def normalize_report(doc: Dict[str, Any], index: int, now: Optional[datetime] = None) -> Report:
    """Map a persistence-API document onto the dashboard's report shape."""
    ts = _parse_timestamp(doc.get("timestamp")) or _parse_timestamp(doc.get("createdAt"))
    if ts is None:
        ts = now or datetime.now(timezone.utc)
    report_id = doc.get("id")
    if not isinstance(report_id, int) or isinstance(report_id, bool):
        report_id = int(ts.timestamp() * 1000) + index

    return Report(
        id=report_id,
        timestamp=ts.isoformat(),
        consumption=_to_float(doc.get("consumption")),
        bill=_to_float(doc.get("bill")),
        total_kwh=doc.get("total_kwh"),
        total_bill=doc.get("total_bill"),
        tariff_bracket=doc.get("tariffBracket") or doc.get("tariff_bracket"),
        household_data=_household_from(doc),
        appliances=_appliances_from(doc),
        breakdown=doc.get("breakdown") or [],
        owner_id=doc.get("ownerId"),
    )


def load_reports(client: BackendClient, session: DashboardSession) -> List[Report]:
    """Admins see every report; a household sees its own, or recent ones when it has none yet."""
    try:
        if session.is_admin:
            docs = client.list_reports(limit=REPORT_LIMIT)
        else:
            docs = client.list_reports(owner_id=session.household_id, limit=REPORT_LIMIT)
            if not docs:
                docs = client.list_reports(limit=REPORT_LIMIT)
    except (RemoteServiceError, ServiceUnavailableError) as exc:
        logger.warning("Failed to fetch reports from backend: %s", exc)
        return []

    reports = []
    for idx, doc in enumerate(docs):
        if isinstance(doc, dict):
            reports.append(normalize_report(doc, idx))
    return reports
