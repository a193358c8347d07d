from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from swift_responder.errors import AIServiceError
from swift_responder.gemini import GeminiClient

logger = logging.getLogger(__name__)

TRAFFIC_MULTIPLIERS = {"light": 1.0, "moderate": 1.2, "heavy": 1.5, "severe": 2.0}
POOR_VISIBILITY_KM = 3.0
POOR_VISIBILITY_MULTIPLIER = 1.3
RUSH_HOUR_MULTIPLIER = 1.15
BASE_CONFIDENCE = 85
MIN_CONFIDENCE = 50


@dataclass(frozen=True)
class WeatherConditions:
    condition: str = "Clear"
    visibility_km: float = 10.0
    temperature: float = 20.0


@dataclass(frozen=True)
class RouteConditions:
    traffic_level: str = "light"
    weather: WeatherConditions = WeatherConditions()
    time_of_day: str = "midday"
    road_quality: Optional[str] = None


@dataclass(frozen=True)
class HistoricalPattern:
    average_delay_minutes: float
    success_rate: float


@dataclass(frozen=True)
class EtaPrediction:
    predicted_eta: int
    confidence: int
    adjustment_factors: List[str]


@dataclass(frozen=True)
class RouteOption:
    hospital_name: str
    distance_km: float
    estimated_time: float
    route_quality: float


@dataclass(frozen=True)
class OptimizedRoute:
    recommended_hospital: str
    alternative_hospital: str
    reasoning: str
    risk_factors: List[str]
    estimated_arrival: float
    confidence_score: float


@dataclass(frozen=True)
class RouteAdvice:
    should_reroute: bool
    reason: str
    suggested_action: str


def time_of_day_band(hour: int) -> str:
    if 7 <= hour < 10:
        return "morning-rush"
    if 10 <= hour < 16:
        return "midday"
    if 16 <= hour < 19:
        return "evening-rush"
    return "night"


def traffic_level(duration_min: float, duration_in_traffic_min: Optional[float]) -> str:
    if not duration_in_traffic_min or duration_min <= 0:
        return "light"
    ratio = duration_in_traffic_min / duration_min
    if ratio < 1.1:
        return "light"
    if ratio < 1.3:
        return "moderate"
    if ratio < 1.6:
        return "heavy"
    return "severe"


def predict_ai_enhanced_eta(
    base_eta: float,
    conditions: RouteConditions,
    historical: Optional[HistoricalPattern] = None,
) -> EtaPrediction:
    adjusted = base_eta
    factors = []

    traffic = TRAFFIC_MULTIPLIERS.get(conditions.traffic_level, 1.0)
    adjusted *= traffic
    if traffic > 1.0:
        factors.append(f"Traffic: +{(traffic - 1) * 100:.0f}% delay")

    if conditions.weather.visibility_km < POOR_VISIBILITY_KM:
        adjusted *= POOR_VISIBILITY_MULTIPLIER
        factors.append("Poor visibility: +30% delay")

    if "rush" in conditions.time_of_day:
        adjusted *= RUSH_HOUR_MULTIPLIER
        factors.append("Rush hour: +15% delay")

    if historical and historical.average_delay_minutes > 0:
        adjusted += historical.average_delay_minutes
        factors.append(f"Historical pattern: +{historical.average_delay_minutes:g} min")

    confidence = BASE_CONFIDENCE
    if conditions.traffic_level == "severe":
        confidence -= 15
    if conditions.weather.visibility_km < 2:
        confidence -= 10
    if historical is None:
        confidence -= 5

    return EtaPrediction(
        predicted_eta=round(adjusted),
        confidence=max(confidence, MIN_CONFIDENCE),
        adjustment_factors=factors,
    )


def _fastest(options: List[RouteOption]) -> RouteOption:
    return min(options, key=lambda option: option.estimated_time)


def ai_route_optimization(
    ai: GeminiClient,
    options: List[RouteOption],
    conditions: RouteConditions,
    urgency: str,
) -> OptimizedRoute:
    if not options:
        raise ValueError("At least one route option is required")

    analysis = "\n".join(
        f"Option {i}: {o.hospital_name}\n- Distance: {o.distance_km:.2f} km\n"
        f"- Estimated Time: {o.estimated_time} minutes\n- Route Quality: {o.route_quality}/10\n"
        for i, o in enumerate(options, start=1)
    )
    context = (
        "You are an emergency dispatch AI optimizing ambulance routes.\n\n"
        "Current Conditions:\n"
        f"- Traffic: {conditions.traffic_level.upper()}\n"
        f"- Weather: {conditions.weather.condition} (Visibility: {conditions.weather.visibility_km}km)\n"
        f"- Time: {conditions.time_of_day.replace('-', ' ')}\n"
        f"- Medical Urgency: {urgency.upper()}\n\n"
        f"Available Route Options:\n{analysis}\n"
        "Recommend the best hospital, a backup hospital, the key risk factors and an adjusted ETA. "
        "In critical emergencies speed matters most; in moderate cases hospital quality matters more.\n"
    )
    if conditions.traffic_level in ("heavy", "severe"):
        context += "\nNOTE: Heavy traffic detected - consider alternative routes or closer hospitals."
    if conditions.weather.visibility_km < 2:
        context += "\nWARNING: Poor visibility - safety is priority."

    try:
        result = ai.suggest_best_hospitals(needs=context, location="Route optimization analysis")
    except AIServiceError as exc:
        logger.warning("AI route optimization failed: %s", exc)
        fastest = _fastest(options)
        return OptimizedRoute(
            recommended_hospital=fastest.hospital_name,
            alternative_hospital=options[1].hospital_name if len(options) > 1 else fastest.hospital_name,
            reasoning="AI analysis unavailable - using fastest route",
            risk_factors=["AI analysis failed - using default routing"],
            estimated_arrival=fastest.estimated_time,
            confidence_score=60,
        )

    if not result:
        fastest = _fastest(options)
        return OptimizedRoute(
            recommended_hospital=fastest.hospital_name,
            alternative_hospital=options[1].hospital_name if len(options) > 1 else fastest.hospital_name,
            reasoning="Selected fastest route based on estimated travel time",
            risk_factors=[],
            estimated_arrival=fastest.estimated_time,
            confidence_score=75,
        )

    primary = result[0]
    backup = result[1] if len(result) > 1 else primary

    risks = []
    if conditions.traffic_level in ("heavy", "severe"):
        delay = "10-15" if conditions.traffic_level == "severe" else "5-10"
        risks.append(f"Heavy traffic - add {delay} min delay")
    if conditions.weather.visibility_km < 2:
        risks.append("Poor visibility - reduce speed by 30%")
    if "rush" in conditions.time_of_day:
        risks.append("Rush hour - expect congestion")

    matching = next((o for o in options if primary.name.lower() in o.hospital_name.lower()), None)
    return OptimizedRoute(
        recommended_hospital=primary.name,
        alternative_hospital=backup.name,
        reasoning=primary.reason,
        risk_factors=risks,
        estimated_arrival=matching.estimated_time if matching else 15,
        confidence_score=min(primary.suitability_score * 10, 100),
    )


def route_adjustment_advice(
    remaining_time_min: float,
    current_speed_kmh: float,
    conditions: RouteConditions,
) -> RouteAdvice:
    if conditions.traffic_level == "severe" and current_speed_kmh < 20:
        return RouteAdvice(True, "Severe traffic congestion detected", "Consider alternative route or nearby hospital")
    if conditions.weather.visibility_km < 1 and remaining_time_min > 15:
        return RouteAdvice(True, "Dangerous visibility conditions", "Reduce speed and consider closest safe hospital")
    if current_speed_kmh < 15 and remaining_time_min > 20:
        return RouteAdvice(
            True, "Unusually slow progress", "Check for accidents or road closures, consider rerouting"
        )
    return RouteAdvice(False, "Route conditions acceptable", "Continue on current route")
