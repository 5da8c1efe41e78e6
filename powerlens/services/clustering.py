from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..clients import AIProxyClient
from ..errors import InsufficientHistoryError, RemoteServiceError, ServiceUnavailableError
from ..schemas import (
    Anomaly,
    ClusterDisplay,
    ClusteringOutcome,
    ClusterPrediction,
    CommunityInsights,
    HouseholdFeatures,
    Report,
)
from .tariff import tariff_bracket

logger = logging.getLogger(__name__)

MIN_REPORTS_FOR_CLUSTERING = 3
DEFAULT_USAGE_HOURS = 4.0
CLUSTER_COLORS = ["green", "blue", "orange"]
CONSUMPTION_RANGES = [
    "0-50 kWh (Low Consumption)",
    "51-150 kWh (Medium Consumption)",
    "151+ kWh (High Consumption)",
]


def average_usage_hours(report: Report) -> float:
    # Appliance hours are not stored on reports; estimate them from consumption.
    if not report.appliances:
        return DEFAULT_USAGE_HOURS
    total = sum(min(8.0, max(2.0, a.consumption / 10)) for a in report.appliances)
    return total / len(report.appliances)


def _household_size(report: Report) -> float:
    try:
        size = float(report.household_data.household_size)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(size) or size == 0:
        return 1
    return size


def build_household_features(report: Report, index: int, now: Optional[datetime] = None) -> HouseholdFeatures:
    now = now or datetime.now(timezone.utc)
    consumption = report.consumption
    return HouseholdFeatures(
        total_kwh=round(consumption, 2),
        total_bill=round(report.bill, 2),
        household_size=_household_size(report),
        region=str(report.household_data.region or "Kigali"),
        income_level=str(report.household_data.income_level or "Medium").lower(),
        tariff_bracket=report.tariff_bracket or tariff_bracket(consumption),
        appliance_count=len(report.appliances),
        avg_usage_hours=average_usage_hours(report),
        daily_energy=round(consumption / 30, 3),
        month=now.strftime("%Y-%m"),
        household_id=str(report.id if report.id is not None else f"report_{index}"),
    )


def _parse_outcome(data: Dict, reports: List[Report]) -> ClusteringOutcome:
    clusters: Dict[int, ClusterPrediction] = {}
    anomalies: List[Anomaly] = []
    assignments: List[int] = []

    for index, item in enumerate(data.get("individual_predictions") or []):
        prediction = ClusterPrediction.model_validate(item)
        clusters[prediction.cluster] = prediction
        assignments.append(prediction.cluster)
        if prediction.anomaly_status == "Anomaly":
            anomalies.append(
                Anomaly(
                    household_id=prediction.household_id or f"household_{index}",
                    cluster=prediction.cluster,
                    cluster_profile=prediction.cluster_profile,
                    anomaly_status=prediction.anomaly_status,
                    anomaly_score=prediction.anomaly_score,
                    anomaly_confidence=prediction.anomaly_confidence,
                    report=reports[index] if index < len(reports) else None,
                )
            )

    return ClusteringOutcome(
        clusters=list(clusters.values()),
        anomalies=anomalies,
        assignments=assignments,
        community_insights=CommunityInsights.model_validate(data.get("community_insights") or {}),
    )


def run_clustering(reports: List[Report], client: AIProxyClient) -> ClusteringOutcome:
    if len(reports) < MIN_REPORTS_FOR_CLUSTERING:
        raise InsufficientHistoryError(
            f"Need at least {MIN_REPORTS_FOR_CLUSTERING} reports to perform clustering analysis",
            available=len(reports),
            required=MIN_REPORTS_FOR_CLUSTERING,
        )

    households = [build_household_features(r, i).model_dump() for i, r in enumerate(reports)]
    logger.info("Sending %d households for clustering", len(households))

    if not client.health():
        raise ServiceUnavailableError(
            "AI service not reachable. Ensure the AI service is running and reachable through the backend proxy."
        )

    data = client.cluster_batch(households)
    if not isinstance(data, dict) or data.get("status") != "success":
        message = data.get("message") if isinstance(data, dict) else None
        raise RemoteServiceError(200, f"Clustering failed: {message or 'Unknown error'}")
    try:
        outcome = _parse_outcome(data, reports)
    except ValidationError as exc:
        raise RemoteServiceError(200, f"Unexpected clustering response: {exc}") from exc
    logger.info("Clustering found %d clusters and %d anomalies", len(outcome.clusters), len(outcome.anomalies))
    return outcome


def cluster_display(outcome: ClusteringOutcome, reports: List[Report], cluster_id: int) -> Optional[ClusterDisplay]:
    cluster = next((c for c in outcome.clusters if c.cluster == cluster_id), None)
    if cluster is None:
        return None

    members = [
        r for idx, r in enumerate(reports)
        if idx < len(outcome.assignments) and outcome.assignments[idx] == cluster_id
    ]
    consumptions = [r.consumption for r in members]
    bills = [r.bill for r in members]
    min_kwh = min(consumptions) if consumptions else 0.0
    max_kwh = max(consumptions) if consumptions else 0.0
    regions = Counter(r.household_data.region or "Unknown" for r in members)

    return ClusterDisplay(
        cluster_id=cluster_id,
        cluster_name=cluster.cluster_profile.name,
        description=cluster.cluster_profile.description,
        color=CLUSTER_COLORS[cluster_id] if 0 <= cluster_id < len(CLUSTER_COLORS) else "gray",
        households=members,
        avg_consumption=round(sum(consumptions) / len(consumptions), 2) if consumptions else 0.0,
        avg_bill=round(sum(bills) / len(bills), 2) if bills else 0.0,
        size=len(members),
        consumption_range=(
            CONSUMPTION_RANGES[cluster_id] if 0 <= cluster_id < len(CONSUMPTION_RANGES) else "Unknown Range"
        ),
        typical_profile=", ".join(cluster.cluster_profile.characteristics),
        min_consumption=min_kwh,
        max_consumption=max_kwh,
        common_regions=[name for name, _ in regions.most_common(3)],
    )
