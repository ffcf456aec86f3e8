"""
Core data models for climatesync

Defines observations, analysis requests, typed model predictions, advisories
and alerts using Pydantic for validation and serialization.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, NamedTuple, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# --- Inputs ---------------------------------------------------------------


class Location(BaseModel):
    """A monitored location"""

    id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Observation(BaseModel):
    """A single weather observation for one location"""

    location_id: str
    location_name: Optional[str] = None
    observed_at: datetime = Field(default_factory=utc_now)
    temperature: Optional[float] = None
    humidity: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    rainfall: float = Field(default=0.0, ge=0.0)  # mm/h
    pressure: Optional[float] = None
    wind_speed: Optional[float] = None
    source: Optional[str] = None

    def metric(self, name: str) -> Optional[float]:
        """Read a numeric observation field by name"""
        return getattr(self, name, None)


class FarmProfile(BaseModel):
    """Farm characteristics used by crop, irrigation and economic rules"""

    size: float = 1.0  # acres
    soil_type: str = "loam"
    current_crops: list[str] = Field(default_factory=list)
    equipment: list[dict[str, Any]] = Field(default_factory=list)


class AnalysisScope(str, Enum):
    WEATHER = "weather"
    CROP = "crop"
    SOIL = "soil"
    IRRIGATION = "irrigation"
    ENERGY = "energy"
    ALERT = "alert"
    FULL = "full"


_SCOPE_ALIASES = {"crops": "crop", "alerts": "alert"}


class AnalysisRequest(BaseModel):
    """Request for one advisory run over a location"""

    location: Location
    observation: Observation
    history: list[Observation] = Field(default_factory=list)
    farm_profile: FarmProfile = Field(default_factory=FarmProfile)
    time_horizon_days: int = Field(default=7, ge=1, le=30)
    scope: list[AnalysisScope] = Field(default_factory=lambda: [AnalysisScope.FULL])

    @field_validator("scope", mode="before")
    @classmethod
    def _coerce_scope(cls, value: Any) -> Any:
        if isinstance(value, (str, AnalysisScope)):
            value = [value]
        if isinstance(value, (list, tuple, set)):
            return [
                _SCOPE_ALIASES.get(item, item) if isinstance(item, str) else item
                for item in value
            ]
        return value

    def resolve_scope(self, available: list[str]) -> list[str]:
        """Return the model names from ``available`` that this request covers"""
        if AnalysisScope.FULL in self.scope:
            return list(available)
        wanted = {scope.value for scope in self.scope}
        return [name for name in available if name in wanted]


# --- Alerts ---------------------------------------------------------------


class AlertType(str, Enum):
    FLOOD = "FLOOD"
    HEAT = "HEAT"


class AlertLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self) + 1


_LEVEL_ORDER = [AlertLevel.LOW, AlertLevel.MEDIUM, AlertLevel.HIGH, AlertLevel.CRITICAL]

# Observation field and unit each alert type is evaluated against
ALERT_METRICS: dict[AlertType, tuple[str, str]] = {
    AlertType.FLOOD: ("rainfall", "mm/h"),
    AlertType.HEAT: ("temperature", "°C"),
}


def ordered_levels() -> list[AlertLevel]:
    """Alert levels from least to most severe"""
    return list(_LEVEL_ORDER)


class ThresholdLevel(BaseModel):
    """One rung of a threshold ladder"""

    alert_type: AlertType
    level: AlertLevel
    value: float
    unit: str = ""


class AlertKey(NamedTuple):
    """Identity of an alert; the level is state, not identity"""

    location_id: str
    alert_type: AlertType


class Alert(BaseModel):
    """An alert raised when an observation crosses a threshold"""

    model_config = ConfigDict(frozen=True)

    alert_id: str = Field(default_factory=lambda: uuid4().hex)
    alert_type: AlertType
    location_id: str
    location_name: Optional[str] = None
    level: AlertLevel
    triggering_value: float
    threshold_value: float
    heat_index: Optional[float] = None
    message: str
    created_at: datetime
    expires_at: datetime
    active: bool = True
    deactivated_at: Optional[datetime] = None
    deactivation_reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_expiry(self) -> "Alert":
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be later than created_at")
        return self

    @property
    def key(self) -> AlertKey:
        return AlertKey(self.location_id, self.alert_type)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def deactivate(self, now: datetime, reason: str) -> "Alert":
        """Return an inactive copy of this alert"""
        return self.model_copy(
            update={"active": False, "deactivated_at": now, "deactivation_reason": reason}
        )


# --- Predictions ----------------------------------------------------------


class WeatherDay(BaseModel):
    day: int
    temperature: float
    rainfall: float = 0.0
    humidity: Optional[float] = None


class WeatherForecast(BaseModel):
    kind: Literal["weather"] = "weather"
    forecast: list[WeatherDay] = Field(default_factory=list)
    trend: str = "stable"


class SoilAssessment(BaseModel):
    kind: Literal["soil"] = "soil"
    health_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    moisture_level: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    ph: Optional[float] = None
    nutrient_status: str = "adequate"


class CropSuitability(BaseModel):
    crop: str
    suitability_score: float = Field(ge=0.0, le=100.0)


class CropRecommendations(BaseModel):
    kind: Literal["crop"] = "crop"
    recommendations: list[CropSuitability] = Field(default_factory=list)


class IrrigationPlan(BaseModel):
    kind: Literal["irrigation"] = "irrigation"
    should_irrigate: bool = False
    recommended_amount_mm: float = 0.0
    efficiency: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    estimated_cost: Optional[float] = None
    soil_moisture_used: Optional[float] = None


class EnergyPlan(BaseModel):
    kind: Literal["energy"] = "energy"
    current_efficiency: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    estimated_savings_cost: float = 0.0
    estimated_savings_kwh: float = 0.0


class Hazard(BaseModel):
    alert_type: AlertType
    level: AlertLevel
    expected_value: float
    day: int


class HazardOutlook(BaseModel):
    kind: Literal["alert"] = "alert"
    overall_risk_level: Literal["none", "low", "medium", "high", "critical"] = "none"
    hazards: list[Hazard] = Field(default_factory=list)
    hours_to_next_event: Optional[float] = None


class EmptyPrediction(BaseModel):
    kind: Literal["none"] = "none"


Prediction = Annotated[
    Union[
        WeatherForecast,
        SoilAssessment,
        CropRecommendations,
        IrrigationPlan,
        EnergyPlan,
        HazardOutlook,
        EmptyPrediction,
    ],
    Field(discriminator="kind"),
]


class ResultStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class ModelResult(BaseModel):
    """Output of exactly one model invocation"""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_type: str
    predictions: Prediction = Field(default_factory=EmptyPrediction)
    confidence: float = Field(ge=0.0, le=1.0)
    generated_at: datetime = Field(default_factory=utc_now)
    status: ResultStatus = ResultStatus.SUCCESS
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        return self.status != ResultStatus.SUCCESS

    @classmethod
    def placeholder(
        cls, model_type: str, reason: str, status: ResultStatus = ResultStatus.FAILED
    ) -> "ModelResult":
        """Zero-confidence stand-in for a model that produced nothing"""
        return cls(
            model_type=model_type,
            predictions=EmptyPrediction(),
            confidence=0.0,
            status=status,
            metadata={"reason": reason},
        )


class PerformanceRecord(BaseModel):
    """Running statistics for one model"""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str
    total_calls: int = 0
    successful_calls: int = 0
    average_response_time_ms: float = 0.0
    average_confidence: float = 0.0
    last_updated: datetime = Field(default_factory=utc_now)

    @property
    def success_rate(self) -> float:
        if self.total_calls == 0:
            return 1.0
        return self.successful_calls / self.total_calls


# --- Advisory -------------------------------------------------------------

Priority = Literal["critical", "high", "medium", "low"]
RiskLevel = Literal["very_low", "low", "medium", "high", "critical"]


class ActionPriority(BaseModel):
    category: str
    action: str
    priority: Priority
    timeframe: str
    estimated_impact: float
    cost: float
    feasibility: float


class RiskFactor(BaseModel):
    category: str
    level: float = Field(ge=0.0, le=100.0)
    description: str
    mitigation: list[str] = Field(default_factory=list)


class RiskAssessment(BaseModel):
    overall_risk_level: RiskLevel = "very_low"
    overall_risk_score: float = Field(default=0.0, ge=0.0, le=100.0)
    risk_factors: list[RiskFactor] = Field(default_factory=list)
    time_to_next_critical_event_hours: float = 168.0


class SustainabilityMetrics(BaseModel):
    water_efficiency: float = Field(ge=0.0, le=100.0)
    energy_efficiency: float = Field(ge=0.0, le=100.0)
    carbon_footprint: float = Field(ge=0.0, le=100.0)
    soil_health: float = Field(ge=0.0, le=100.0)
    biodiversity_index: float = Field(ge=0.0, le=100.0)
    sustainability_score: float = Field(ge=0.0, le=100.0)


class EconomicForecast(BaseModel):
    expected_revenue: float
    operational_costs: float
    profit_margin: float = Field(ge=-100.0, le=100.0)
    roi: float
    risk_adjusted_return: float
    market_outlook: Literal["positive", "neutral", "negative"] = "neutral"


class IntegratedRecommendation(BaseModel):
    id: str
    category: str
    title: str
    description: str
    priority: int
    impact: dict[str, float] = Field(default_factory=dict)
    implementation_steps: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    timeframe: str
    confidence: float = Field(ge=0.0, le=1.0)


class SystemMetrics(BaseModel):
    total_processing_time_ms: float = 0.0
    models_used: list[str] = Field(default_factory=list)
    models_failed: list[str] = Field(default_factory=list)
    data_quality: float = Field(default=100.0, ge=0.0, le=100.0)


class AdvisoryStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    ALL_MODELS_FAILED = "ALL_MODELS_FAILED"


class Advisory(BaseModel):
    """Aggregated, request-scoped output of all model results"""

    location_id: str
    location_name: str
    overall_score: int = Field(ge=0, le=100)
    overall_confidence: float = Field(ge=0.0, le=1.0)
    status: AdvisoryStatus = AdvisoryStatus.SUCCESS
    results: dict[str, ModelResult] = Field(default_factory=dict)
    action_priorities: list[ActionPriority] = Field(default_factory=list)
    risk_assessment: RiskAssessment = Field(default_factory=RiskAssessment)
    sustainability_metrics: SustainabilityMetrics
    economic_forecast: EconomicForecast
    recommendations: list[IntegratedRecommendation] = Field(default_factory=list)
    system_metrics: SystemMetrics = Field(default_factory=SystemMetrics)
    generated_at: datetime = Field(default_factory=utc_now)
