from __future__ import annotations

# Residential tariff, RWF per kWh
TIER_1_LIMIT_KWH = 20.0
TIER_2_LIMIT_KWH = 50.0
TIER_1_RATE = 89.0
TIER_2_RATE = 310.0
TIER_3_RATE = 369.0

BRACKET_LOW = "0-20 kWh"
BRACKET_MID = "21-50 kWh"
BRACKET_HIGH = "50+ kWh"


def calculate_bill(kwh: float) -> float:
    kwh = max(0.0, kwh)
    if kwh <= TIER_1_LIMIT_KWH:
        return kwh * TIER_1_RATE
    if kwh <= TIER_2_LIMIT_KWH:
        return TIER_1_LIMIT_KWH * TIER_1_RATE + (kwh - TIER_1_LIMIT_KWH) * TIER_2_RATE
    return (
        TIER_1_LIMIT_KWH * TIER_1_RATE
        + (TIER_2_LIMIT_KWH - TIER_1_LIMIT_KWH) * TIER_2_RATE
        + (kwh - TIER_2_LIMIT_KWH) * TIER_3_RATE
    )


def tariff_bracket(kwh: float) -> str:
    if kwh <= TIER_1_LIMIT_KWH:
        return BRACKET_LOW
    if kwh <= TIER_2_LIMIT_KWH:
        return BRACKET_MID
    return BRACKET_HIGH
