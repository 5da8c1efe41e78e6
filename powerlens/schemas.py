from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


# Households and reports


class HouseholdData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    region: Optional[str] = None
    income_level: Optional[str] = Field(None, validation_alias=_alias("income_level", "incomeLevel"))
    household_size: Optional[Union[int, float, str]] = Field(
        None, validation_alias=_alias("household_size", "householdSize")
    )
    monthly_budget: Optional[Union[float, str]] = Field(
        None, validation_alias=_alias("monthly_budget", "monthlyBudget", "budget")
    )

    def is_complete(self) -> bool:
        values = (self.region, self.income_level, self.household_size, self.monthly_budget)
        return all(v is not None and str(v).strip() != "" for v in values)


class PredictionAppliance(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = "Unknown Appliance"
    consumption: float = 0.0
    bill: float = 0.0
    percentage: float = 0.0
    power_watts: float = Field(0.0, validation_alias=_alias("power_watts", "powerWatts"))


class Report(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    timestamp: str
    consumption: float = 0.0
    bill: float = 0.0
    total_kwh: Optional[float] = None
    total_bill: Optional[float] = None
    tariff_bracket: Optional[str] = Field(None, validation_alias=_alias("tariff_bracket", "tariffBracket"))
    household_data: HouseholdData = Field(
        default_factory=HouseholdData, validation_alias=_alias("household_data", "householdData")
    )
    appliances: List[PredictionAppliance] = Field(default_factory=list)
    breakdown: List[Any] = Field(default_factory=list)
    owner_id: Optional[str] = Field(None, validation_alias=_alias("owner_id", "ownerId"))


# Prediction (supervised model)


class ApplianceEntry(BaseModel):
    """One appliance line as entered in the prediction form."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    power: float = Field(..., gt=0, description="Rated power in watts")
    hours: float = Field(..., gt=0, le=24, description="Daily hours of use")
    quantity: int = Field(1, ge=1)
    usage_days: int = Field(30, ge=1, le=31, validation_alias=_alias("usage_days", "usageDays"))


class ApplianceBreakdown(BaseModel):
    appliance: str
    power_watts: float = 0.0
    hours_daily: Optional[float] = None
    quantity: Optional[int] = None
    usage_days_monthly: Optional[int] = None
    estimated_kwh: float
    estimated_bill: float
    percentage: float


class AIRecommendation(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    suggestion: Optional[str] = None
    title: Optional[str] = None
    savings_estimate: Optional[float] = None
    cost_estimate: Optional[float] = None
    priority: Optional[str] = None
    confidence_score: Optional[float] = None
    ai_insights: Optional[Dict[str, Any]] = None


class PredictionResult(BaseModel):
    """Response of the supervised ``/predict`` endpoint."""

    total_kwh: float
    total_bill: float
    tariff_bracket: str
    breakdown: List[ApplianceBreakdown]
    budget_status: str
    budget_difference: float
    recommendations: List[Dict[str, Any]] = Field(default_factory=list)
    status: str = "success"
    message: str = ""
    report_id: str = ""
    model_used: str = ""
    ai_recommendations: List[AIRecommendation] = Field(default_factory=list)


class Predictions(BaseModel):
    id: str
    consumption: float
    bill: float
    tariff_bracket: str
    budget_status: str
    budget_difference: float
    message: str
    appliances: List[PredictionAppliance]
    household_data: HouseholdData
    timestamp: str
    total_kwh: float
    total_bill: float
    report_id: str
    ai_recommendations: List[AIRecommendation] = Field(default_factory=list)


class PredictionRequest(BaseModel):
    household: HouseholdData
    appliances: List[ApplianceEntry]


class RecommendationRow(BaseModel):
    appliance: str
    power: float
    current_hours: float
    current_days: float
    recommended_hours: float
    recommended_days: float
    current_bill: float
    recommended_bill: float
    savings: float
    tip: str


class ApiStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: str
    message: Optional[str] = None
    model_loaded: Optional[bool] = None
    models: Optional[Dict[str, Any]] = None


# Forecasting


class ForecastPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: str
    predicted_consumption_kwh: float = Field(..., ge=0)
    predicted_bill_rwf: float = Field(..., ge=0)
    tariff_bracket: str
    confidence: str


class ForecastResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    message: str = ""
    historical_data: List[float] = Field(default_factory=list)
    forecast_months: int = 0
    predictions: List[ForecastPoint]
    total_forecasted_consumption: float = 0.0
    total_forecasted_bill: float = 0.0
    average_monthly_consumption: float
    average_monthly_bill: float
    trend: str
    trend_percentage: float
    model_used: str
    forecast_id: str

    @model_validator(mode="before")
    @classmethod
    def _fill_totals(cls, data: Any) -> Any:
        # Some forecast services omit totals; derive them from the points.
        if not isinstance(data, dict):
            return data
        points = data.get("predictions") or []
        data = dict(data)
        if "total_forecasted_consumption" not in data:
            data["total_forecasted_consumption"] = round(
                sum(float(_point_value(p, "predicted_consumption_kwh")) for p in points), 2
            )
        if "total_forecasted_bill" not in data:
            data["total_forecasted_bill"] = round(
                sum(float(_point_value(p, "predicted_bill_rwf")) for p in points), 2
            )
        data.setdefault("forecast_months", len(points))
        return data


def _point_value(point: Any, name: str) -> Any:
    if isinstance(point, dict):
        return point.get(name, 0.0)
    return getattr(point, name, 0.0)


class ForecastRequest(BaseModel):
    months_ahead: Optional[int] = Field(None, ge=1, le=12)


class FallbackForecastRequest(BaseModel):
    historical_data: List[Annotated[float, Field(ge=0, allow_inf_nan=False)]] = Field(default_factory=list)
    months_ahead: int = Field(3, ge=1, le=12)


# Analysis


class DistributionItem(BaseModel):
    name: str
    value: int


class IncomeAverage(BaseModel):
    name: str
    avg_consumption: float


class ConsumptionTrendPoint(BaseModel):
    index: int
    consumption: float
    bill: float


class ApplianceUsage(BaseModel):
    name: str
    count: int
    percentage: float


class AnalysisSummary(BaseModel):
    report_count: int
    total_consumption: float
    average_consumption: float
    total_bill: float
    average_bill: float
    average_household_size: Optional[float] = None
    has_enough_data_for_forecast: bool
    regions: List[DistributionItem]
    income_levels: List[IncomeAverage]
    consumption_trend: List[ConsumptionTrendPoint]
    tariff_brackets: List[DistributionItem]
    appliance_usage: List[ApplianceUsage]


# Clustering / anomaly detection


class ClusterProfile(BaseModel):
    name: str = ""
    description: str = ""
    characteristics: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class HouseholdFeatures(BaseModel):
    total_kwh: float
    total_bill: float
    household_size: float
    region: str
    income_level: str
    tariff_bracket: str
    appliance_count: int
    avg_usage_hours: float
    daily_energy: float
    month: str
    household_id: str


class ClusterPrediction(BaseModel):
    cluster: int
    cluster_profile: ClusterProfile = Field(default_factory=ClusterProfile)
    anomaly_status: str = "Normal"
    anomaly_score: float = 0.0
    anomaly_confidence: str = ""
    features_used: Dict[str, List[str]] = Field(default_factory=dict)
    household_id: Optional[str] = None


class Anomaly(BaseModel):
    household_id: str
    cluster: int
    cluster_profile: ClusterProfile
    anomaly_status: str
    anomaly_score: float
    anomaly_confidence: str
    report: Optional[Report] = None


class CommunityInsights(BaseModel):
    model_config = ConfigDict(extra="allow")

    total_households_analyzed: int = 0
    cluster_distribution: Dict[int, int] = Field(default_factory=dict)
    anomaly_rate_percentage: float = 0.0
    dominant_cluster: str = ""
    recommendations: List[str] = Field(default_factory=list)


class ClusteringOutcome(BaseModel):
    clusters: List[ClusterPrediction]
    anomalies: List[Anomaly]
    assignments: List[int]
    community_insights: CommunityInsights


class ClusterDisplay(BaseModel):
    cluster_id: int
    cluster_name: str
    description: str
    color: str
    households: List[Report]
    avg_consumption: float
    avg_bill: float
    size: int
    consumption_range: str
    typical_profile: str
    min_consumption: float
    max_consumption: float
    common_regions: List[str]


# Feedback and session


class Feedback(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    created_at: Optional[str] = Field(None, validation_alias=_alias("created_at", "createdAt"))
    household_id: Optional[str] = Field(None, validation_alias=_alias("household_id", "householdId"))


class FeedbackReceipt(BaseModel):
    posted: bool
    message: str


class SessionUpdate(BaseModel):
    role: str


class SessionState(BaseModel):
    role: str
    household_id: str
    landing_section: str
