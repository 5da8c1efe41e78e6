from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ..schemas import AIRecommendation, ApplianceEntry, Predictions, RecommendationRow

MAX_REDUCTION_SHARE = 0.4

OPTIMAL_TIP = "Current usage is optimal. Maintain this level."
ACCEPTABLE_TIP = "Current usage is acceptable for budget"


def _reduced_usage(name: str, hours: float, days: float, pct: float) -> Tuple[float, float, str]:
    """Recommended (hours, days, tip) for one appliance given the share of its bill to cut."""
    name = name.lower()
    if "refrigerator" in name or "fridge" in name:
        # Runs continuously; only efficiency can help
        return 24.0, 30.0, "Keep at 3-4°C, clean coils monthly, check door seals"
    if "water heater" in name or "geyser" in name:
        return max(2.0, hours * (1 - pct * 1.5)), days, "Heat water only when needed, lower temperature to 50-55°C"
    if "ac" in name or "air condition" in name:
        return max(4.0, hours * (1 - pct * 1.2)), days, "Set to 24-26°C, use fans for circulation, close doors/windows"
    if "iron" in name or "pressing" in name:
        return (
            max(0.5, hours * (1 - pct)),
            max(15.0, days * (1 - pct * 0.5)),
            "Iron multiple clothes in one session, use residual heat",
        )
    if "tv" in name or "television" in name:
        return max(3.0, hours * (1 - pct)), days, "Reduce brightness, unplug when not in use, use power-saving mode"
    if "washing machine" in name or "washer" in name:
        return hours, max(15.0, days * (1 - pct * 0.5)), "Run full loads only, use cold water when possible"
    if "light" in name or "bulb" in name or "lamp" in name:
        return max(2.0, hours * (1 - pct)), days, "Switch to LED bulbs, use natural light during day"
    return (
        max(1.0, hours * (1 - pct)),
        max(15.0, days * (1 - pct * 0.3)),
        "Reduce usage during peak hours, unplug when not in use",
    )


def _unchanged_row(name: str, power: float, entry: ApplianceEntry, bill: float, tip: str) -> RecommendationRow:
    return RecommendationRow(
        appliance=name,
        power=power,
        current_hours=entry.hours,
        current_days=entry.usage_days,
        recommended_hours=entry.hours,
        recommended_days=entry.usage_days,
        current_bill=bill,
        recommended_bill=bill,
        savings=0.0,
        tip=tip,
    )


def generate_recommendations(
    predictions: Predictions, appliances: List[ApplianceEntry], monthly_budget: float
) -> List[RecommendationRow]:
    """Per-appliance usage changes that bring the monthly bill back within budget.

    Appliances are visited from the most to the least expensive; each one is
    asked to give up at most 40% of its bill until the overshoot is covered.
    """
    entries: Dict[str, ApplianceEntry] = {a.name: a for a in appliances}
    rows: List[RecommendationRow] = []

    if predictions.budget_status != "over_budget":
        for app in predictions.appliances:
            entry = entries.get(app.name)
            if entry is not None:
                rows.append(_unchanged_row(app.name, app.power_watts, entry, app.bill, OPTIMAL_TIP))
        return rows

    remaining = abs(predictions.budget_difference)
    total_kwh = predictions.consumption

    for app in sorted(predictions.appliances, key=lambda a: a.bill, reverse=True):
        entry = entries.get(app.name)
        if entry is None:
            continue
        if remaining <= 0 or app.bill <= 0:
            rows.append(_unchanged_row(app.name, app.power_watts, entry, app.bill, ACCEPTABLE_TIP))
            continue

        target = min(remaining, app.bill * MAX_REDUCTION_SHARE)
        pct = target / app.bill
        hours, days, tip = _reduced_usage(app.name, entry.hours, entry.usage_days, pct)

        monthly_kwh = app.power_watts * hours * days / 1000
        recommended_bill = (monthly_kwh / total_kwh) * monthly_budget if total_kwh else 0.0
        savings = app.bill - recommended_bill

        rows.append(
            RecommendationRow(
                appliance=app.name,
                power=app.power_watts,
                current_hours=entry.hours,
                current_days=entry.usage_days,
                recommended_hours=round(hours, 1),
                recommended_days=round(days),
                current_bill=app.bill,
                recommended_bill=max(0.0, recommended_bill),
                savings=max(0.0, savings),
                tip=tip,
            )
        )
        remaining -= savings
    return rows


def split_ai_recommendations(
    items: List[AIRecommendation],
) -> Tuple[Optional[AIRecommendation], List[AIRecommendation]]:
    summary = next((item for item in items if item.type == "summary"), None)
    return summary, [item for item in items if item.type != "summary"]
