"""
Advisory aggregation

Pure, deterministic functions that turn a bag of per-model results into
scores, prioritized actions, a risk assessment and projections. Placeholder
results are ignored and every function has defaults for missing inputs.
"""

from collections.abc import Mapping
from statistics import mean
from typing import Optional, TypeVar

from pydantic import BaseModel

from .models import (
    ActionPriority,
    Advisory,
    AdvisoryStatus,
    AnalysisRequest,
    CropRecommendations,
    EconomicForecast,
    EnergyPlan,
    FarmProfile,
    HazardOutlook,
    IntegratedRecommendation,
    IrrigationPlan,
    ModelResult,
    RiskAssessment,
    RiskFactor,
    SoilAssessment,
    SustainabilityMetrics,
    SystemMetrics,
)

DEFAULT_OVERALL_SCORE = 70
DEFAULT_OVERALL_CONFIDENCE = 0.75

PRIORITY_RANK = {"critical": 4, "high": 3, "medium": 2, "low": 1}

SOIL_ACTION_THRESHOLD = 60
SOIL_RISK_THRESHOLD = 50
SOIL_RECOMMENDATION_THRESHOLD = 70
ENERGY_ACTION_THRESHOLD = 70
CRITICAL_IRRIGATION_MM = 40
WATER_STRESS_MOISTURE = 30

# (exclusive lower bound, bucket), checked from the top
RISK_BREAKPOINTS = [(80, "critical"), (65, "high"), (45, "medium"), (25, "low")]
DEFAULT_HOURS_TO_CRITICAL_EVENT = 168.0

DEFAULT_WATER_EFFICIENCY = 75.0
DEFAULT_ENERGY_EFFICIENCY = 70.0
DEFAULT_SOIL_HEALTH = 60.0
BIODIVERSITY_INDEX = 60.0
SUSTAINABILITY_WEIGHTS = {
    "water": 0.25,
    "energy": 0.25,
    "soil": 0.30,
    "carbon": 0.15,
    "biodiversity": 0.05,
}

BASE_REVENUE_PER_ACRE = 2000.0
BASE_COST_PER_ACRE = 1200.0
RISK_RETURN_ADJUSTMENT = {"critical": 0.85, "high": 0.9, "medium": 0.95}

T = TypeVar("T", bound=BaseModel)

Results = Mapping[str, ModelResult]


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _present(results: Results) -> list[ModelResult]:
    return [result for result in results.values() if not result.is_placeholder]


def _prediction(results: Results, name: str, prediction_type: type[T]) -> Optional[T]:
    result = results.get(name)
    if result is None or result.is_placeholder:
        return None
    if isinstance(result.predictions, prediction_type):
        return result.predictions
    return None


def average_crop_suitability(results: Results) -> Optional[float]:
    crops = _prediction(results, "crop", CropRecommendations)
    if crops is None or not crops.recommendations:
        return None
    return mean(item.suitability_score for item in crops.recommendations)


def calculate_overall_score(results: Results) -> int:
    """Mean of the available sub-scores, or the neutral default"""
    scores = []

    soil = _prediction(results, "soil", SoilAssessment)
    if soil is not None and soil.health_score is not None:
        scores.append(soil.health_score)

    irrigation = _prediction(results, "irrigation", IrrigationPlan)
    if irrigation is not None and irrigation.efficiency is not None:
        scores.append(irrigation.efficiency * 100)

    energy = _prediction(results, "energy", EnergyPlan)
    if energy is not None and energy.current_efficiency is not None:
        scores.append(energy.current_efficiency)

    suitability = average_crop_suitability(results)
    if suitability is not None:
        scores.append(suitability)

    if not scores:
        return DEFAULT_OVERALL_SCORE
    return int(round(_clamp(mean(scores))))


def calculate_overall_confidence(results: Results) -> float:
    """Mean confidence of the results that are present"""
    confidences = [result.confidence for result in _present(results)]
    if not confidences:
        return DEFAULT_OVERALL_CONFIDENCE
    return round(_clamp(mean(confidences), 0.0, 1.0), 2)


def generate_action_priorities(results: Results) -> list[ActionPriority]:
    """
    Evaluate action rules and order them by priority

    The sort is stable, so actions with equal priority keep rule order.
    """
    priorities: list[ActionPriority] = []

    soil = _prediction(results, "soil", SoilAssessment)
    if soil is not None and soil.health_score is not None and soil.health_score < SOIL_ACTION_THRESHOLD:
        priorities.append(
            ActionPriority(
                category="soil_management",
                action="Improve soil health through organic amendments",
                priority="high",
                timeframe="1-2 weeks",
                estimated_impact=85,
                cost=500,
                feasibility=90,
            )
        )

    irrigation = _prediction(results, "irrigation", IrrigationPlan)
    if irrigation is not None and irrigation.should_irrigate:
        amount = irrigation.recommended_amount_mm
        priorities.append(
            ActionPriority(
                category="water_management",
                action=f"Apply {amount:g}mm irrigation",
                priority="critical" if amount > CRITICAL_IRRIGATION_MM else "high",
                timeframe="24 hours",
                estimated_impact=75,
                cost=irrigation.estimated_cost if irrigation.estimated_cost is not None else 100,
                feasibility=95,
            )
        )

    energy = _prediction(results, "energy", EnergyPlan)
    if (
        energy is not None
        and energy.current_efficiency is not None
        and energy.current_efficiency < ENERGY_ACTION_THRESHOLD
    ):
        priorities.append(
            ActionPriority(
                category="energy_management",
                action="Optimize equipment scheduling for energy efficiency",
                priority="medium",
                timeframe="1 week",
                estimated_impact=60,
                cost=200,
                feasibility=80,
            )
        )

    outlook = _prediction(results, "alert", HazardOutlook)
    if outlook is not None and outlook.overall_risk_level in ("high", "critical"):
        priorities.append(
            ActionPriority(
                category="disaster_preparedness",
                action="Secure equipment and protect crops ahead of severe weather",
                priority=outlook.overall_risk_level,
                timeframe="12 hours",
                estimated_impact=80,
                cost=150,
                feasibility=85,
            )
        )

    return sorted(priorities, key=lambda item: PRIORITY_RANK[item.priority], reverse=True)


def bucket_risk(score: float) -> str:
    for bound, name in RISK_BREAKPOINTS:
        if score > bound:
            return name
    return "very_low"


def generate_risk_assessment(results: Results) -> RiskAssessment:
    """Worst-case risk across all rules"""
    factors: list[RiskFactor] = []

    soil = _prediction(results, "soil", SoilAssessment)
    if soil is not None and soil.health_score is not None and soil.health_score < SOIL_RISK_THRESHOLD:
        factors.append(
            RiskFactor(
                category="soil_degradation",
                level=80,
                description="Poor soil health detected",
                mitigation=["Apply organic matter", "Improve drainage", "Regular soil testing"],
            )
        )

    outlook = _prediction(results, "alert", HazardOutlook)
    if outlook is not None and outlook.overall_risk_level in ("high", "critical"):
        factors.append(
            RiskFactor(
                category="weather_extreme",
                level=75,
                description="Severe weather conditions expected",
                mitigation=["Secure equipment", "Protect crops", "Monitor conditions closely"],
            )
        )

    if soil is not None and soil.moisture_level is not None and soil.moisture_level < WATER_STRESS_MOISTURE:
        factors.append(
            RiskFactor(
                category="water_stress",
                level=55,
                description="Soil moisture is critically low",
                mitigation=["Schedule irrigation", "Apply mulch", "Reduce tillage"],
            )
        )

    score = max((factor.level for factor in factors), default=0.0)

    hours = DEFAULT_HOURS_TO_CRITICAL_EVENT
    if outlook is not None and outlook.hours_to_next_event is not None:
        hours = outlook.hours_to_next_event

    return RiskAssessment(
        overall_risk_level=bucket_risk(score),
        overall_risk_score=score,
        risk_factors=factors,
        time_to_next_critical_event_hours=hours,
    )


def calculate_sustainability_metrics(results: Results) -> SustainabilityMetrics:
    irrigation = _prediction(results, "irrigation", IrrigationPlan)
    energy = _prediction(results, "energy", EnergyPlan)
    soil = _prediction(results, "soil", SoilAssessment)

    water_efficiency = DEFAULT_WATER_EFFICIENCY
    if irrigation is not None and irrigation.efficiency is not None:
        water_efficiency = irrigation.efficiency * 100

    energy_efficiency = DEFAULT_ENERGY_EFFICIENCY
    if energy is not None and energy.current_efficiency is not None:
        energy_efficiency = energy.current_efficiency

    soil_health = DEFAULT_SOIL_HEALTH
    if soil is not None and soil.health_score is not None:
        soil_health = soil.health_score

    water_efficiency = _clamp(water_efficiency)
    energy_efficiency = _clamp(energy_efficiency)
    soil_health = _clamp(soil_health)
    carbon_footprint = _clamp(100 - energy_efficiency)

    weights = SUSTAINABILITY_WEIGHTS
    score = (
        water_efficiency * weights["water"]
        + energy_efficiency * weights["energy"]
        + soil_health * weights["soil"]
        + (100 - carbon_footprint) * weights["carbon"]
        + BIODIVERSITY_INDEX * weights["biodiversity"]
    )

    return SustainabilityMetrics(
        water_efficiency=round(water_efficiency, 1),
        energy_efficiency=round(energy_efficiency, 1),
        carbon_footprint=round(carbon_footprint, 1),
        soil_health=round(soil_health, 1),
        biodiversity_index=BIODIVERSITY_INDEX,
        sustainability_score=round(_clamp(score)),
    )


def generate_economic_forecast(
    results: Results,
    farm_profile: Optional[FarmProfile] = None,
    risk: Optional[RiskAssessment] = None,
) -> EconomicForecast:
    farm_size = farm_profile.size if farm_profile is not None and farm_profile.size > 0 else 1.0
    baseline_costs = BASE_COST_PER_ACRE * farm_size

    revenue_multiplier = 1.0
    suitability = average_crop_suitability(results)
    if suitability is not None:
        revenue_multiplier = suitability / 100

    cost_multiplier = 1.0
    energy = _prediction(results, "energy", EnergyPlan)
    if energy is not None and energy.estimated_savings_cost > 0:
        cost_multiplier = max(0.0, 1 - energy.estimated_savings_cost / baseline_costs)

    expected_revenue = BASE_REVENUE_PER_ACRE * farm_size * revenue_multiplier
    operational_costs = baseline_costs * cost_multiplier
    profit = expected_revenue - operational_costs

    profit_margin = (profit / expected_revenue) * 100 if expected_revenue > 0 else -100.0
    profit_margin = _clamp(profit_margin, -100.0, 100.0)
    roi = (profit / operational_costs) * 100 if operational_costs > 0 else 0.0

    adjustment = 1.0
    if risk is not None:
        adjustment = RISK_RETURN_ADJUSTMENT.get(risk.overall_risk_level, 1.0)

    if profit_margin > 25:
        outlook = "positive"
    elif profit_margin < 15:
        outlook = "negative"
    else:
        outlook = "neutral"

    return EconomicForecast(
        expected_revenue=round(expected_revenue),
        operational_costs=round(operational_costs),
        profit_margin=round(profit_margin, 2),
        roi=round(roi, 2),
        risk_adjusted_return=round(roi * adjustment, 2),
        market_outlook=outlook,
    )


def generate_integrated_recommendations(results: Results) -> list[IntegratedRecommendation]:
    recommendations: list[IntegratedRecommendation] = []

    soil = _prediction(results, "soil", SoilAssessment)
    if soil is not None and soil.health_score is not None and soil.health_score < SOIL_RECOMMENDATION_THRESHOLD:
        recommendations.append(
            IntegratedRecommendation(
                id=f"rec_{len(recommendations) + 1}",
                category="soil_management",
                title="Improve Soil Health",
                description="Implement comprehensive soil improvement program",
                priority=90,
                impact={"yield": 15, "cost": -500, "sustainability": 20, "risk": -25},
                implementation_steps=[
                    "Conduct soil testing",
                    "Apply organic matter",
                    "Implement cover cropping",
                    "Optimize pH levels",
                ],
                dependencies=["soil_testing", "organic_matter_sourcing"],
                timeframe="2-4 weeks",
                confidence=0.85,
            )
        )

    irrigation = _prediction(results, "irrigation", IrrigationPlan)
    if irrigation is not None and irrigation.should_irrigate:
        recommendations.append(
            IntegratedRecommendation(
                id=f"rec_{len(recommendations) + 1}",
                category="water_management",
                title="Optimize Irrigation Schedule",
                description="Schedule irrigation from soil moisture and forecast rainfall",
                priority=85,
                impact={"yield": 10, "cost": -200, "sustainability": 15, "risk": -15},
                implementation_steps=[
                    "Install soil sensors",
                    "Set up automation",
                    "Schedule as recommended",
                    "Monitor feedback",
                ],
                dependencies=["irrigation_equipment"],
                timeframe="1-2 weeks",
                confidence=0.9,
            )
        )

    return sorted(recommendations, key=lambda item: item.priority, reverse=True)


def assess_data_quality(request: AnalysisRequest) -> float:
    """Score 0-100 for how complete the request inputs are"""
    quality = 100.0
    if request.observation.temperature is None:
        quality -= 20
    if request.location.latitude is None or request.location.longitude is None:
        quality -= 15
    if request.farm_profile.size <= 0:
        quality -= 15
    if not request.farm_profile.soil_type:
        quality -= 10
    if not request.farm_profile.current_crops:
        quality -= 10
    return max(0.0, quality)


def build_advisory(
    request: AnalysisRequest,
    results: Results,
    status: AdvisoryStatus = AdvisoryStatus.SUCCESS,
    processing_time_ms: float = 0.0,
    confidence_override: Optional[float] = None,
) -> Advisory:
    """Assemble a complete advisory from per-model results"""
    risk = generate_risk_assessment(results)
    confidence = calculate_overall_confidence(results)
    if confidence_override is not None:
        confidence = round(_clamp(confidence_override, 0.0, 1.0), 2)

    return Advisory(
        location_id=request.location.id,
        location_name=request.location.name,
        overall_score=calculate_overall_score(results),
        overall_confidence=confidence,
        status=status,
        results=dict(results),
        action_priorities=generate_action_priorities(results),
        risk_assessment=risk,
        sustainability_metrics=calculate_sustainability_metrics(results),
        economic_forecast=generate_economic_forecast(results, request.farm_profile, risk),
        recommendations=generate_integrated_recommendations(results),
        system_metrics=SystemMetrics(
            total_processing_time_ms=round(processing_time_ms, 2),
            models_used=[name for name, result in results.items() if not result.is_placeholder],
            models_failed=[name for name, result in results.items() if result.is_placeholder],
            data_quality=assess_data_quality(request),
        ),
    )
