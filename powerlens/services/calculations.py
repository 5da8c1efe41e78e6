from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..schemas import (
    AnalysisSummary,
    ApplianceUsage,
    ConsumptionTrendPoint,
    DistributionItem,
    IncomeAverage,
    Report,
)
from ..settings import settings


def _sort_key(report: Report) -> datetime:
    try:
        ts = datetime.fromisoformat(report.timestamp.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return datetime.now(timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def historical_series(reports: List[Report]) -> List[float]:
    """Consumption per report, oldest first."""
    ordered = sorted(reports, key=_sort_key)
    return [r.consumption for r in ordered]


def has_enough_data_for_forecast(reports: List[Report]) -> bool:
    return len(reports) >= settings.min_reports_for_forecast


def region_distribution(reports: List[Report]) -> List[DistributionItem]:
    counts: Counter = Counter(r.household_data.region or "Unknown" for r in reports)
    return [DistributionItem(name=name, value=value) for name, value in counts.items()]


def income_consumption(reports: List[Report]) -> List[IncomeAverage]:
    totals: Dict[str, List[float]] = {}
    for r in reports:
        income = r.household_data.income_level or "Unknown"
        totals.setdefault(income, []).append(r.consumption)
    return [
        IncomeAverage(name=name, avg_consumption=round(sum(values) / len(values), 2))
        for name, values in totals.items()
    ]


def consumption_trend(reports: List[Report]) -> List[ConsumptionTrendPoint]:
    return [
        ConsumptionTrendPoint(index=idx + 1, consumption=r.consumption, bill=r.bill)
        for idx, r in enumerate(reports)
    ]


def tariff_distribution(reports: List[Report]) -> List[DistributionItem]:
    counts: Counter = Counter(r.tariff_bracket or "Unknown" for r in reports)
    return [DistributionItem(name=name, value=value) for name, value in counts.items()]


def appliance_usage(reports: List[Report]) -> List[ApplianceUsage]:
    """How many reports mention each appliance, most common first."""
    if not reports:
        return []
    counts: Counter = Counter()
    for r in reports:
        for appliance in r.appliances:
            counts[appliance.name or "Unknown Appliance"] += 1
    usage = [
        ApplianceUsage(name=name, count=count, percentage=round(count / len(reports) * 100, 1))
        for name, count in counts.items()
    ]
    usage.sort(key=lambda u: u.count, reverse=True)
    return usage


def _household_size(report: Report) -> float:
    size = report.household_data.household_size
    try:
        return float(size) if size is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def average_household_size(reports: List[Report]) -> Optional[float]:
    if not reports:
        return None
    return sum(_household_size(r) for r in reports) / len(reports)


def build_summary(reports: List[Report]) -> AnalysisSummary:
    n = len(reports)
    total_kwh = sum(r.consumption for r in reports)
    total_bill = sum(r.bill for r in reports)
    avg_size = average_household_size(reports)
    return AnalysisSummary(
        report_count=n,
        total_consumption=round(total_kwh, 2),
        average_consumption=round(total_kwh / n, 2) if n else 0.0,
        total_bill=round(total_bill, 2),
        average_bill=round(total_bill / n, 2) if n else 0.0,
        average_household_size=round(avg_size, 2) if avg_size is not None else None,
        has_enough_data_for_forecast=has_enough_data_for_forecast(reports),
        regions=region_distribution(reports),
        income_levels=income_consumption(reports),
        consumption_trend=consumption_trend(reports),
        tariff_brackets=tariff_distribution(reports),
        appliance_usage=appliance_usage(reports),
    )
