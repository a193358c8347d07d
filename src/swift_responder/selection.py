from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from swift_responder.geo import haversine_km
from swift_responder.models import Ambulance, AmbulanceStatus, Coordinates, SelectionCriteria

SPECIALTY_KEYWORDS = {
    "cardiac": ("cardiac", "heart", "chest pain"),
    "respiratory": ("breathing", "respiratory", "asthma"),
    "trauma": ("trauma", "injury", "accident"),
    "pediatric": ("pediatric", "child", "infant"),
}

SPECIALTY_EQUIPMENT = {
    "cardiac": ("defibrillator", "ecg"),
    "respiratory": ("ventilator", "oxygen"),
    "trauma": ("stretcher", "splints", "bandages"),
    "pediatric": ("pediatric", "child"),
}

SPECIALTY_REASONS = {
    "cardiac": ("Cardiac equipment available", "Limited cardiac equipment"),
    "respiratory": ("Respiratory support available", "Limited respiratory equipment"),
    "trauma": ("Trauma equipment ready", None),
    "pediatric": ("Pediatric equipment available", None),
}

EQUIPMENT_RECOMMENDATIONS = {
    "cardiac": {
        "critical": ["Defibrillator", "ECG Monitor", "Oxygen"],
        "recommended": ["IV Setup", "Cardiac Medications", "Ventilator"],
        "optional": ["Blood Pressure Monitor", "Pulse Oximeter"],
    },
    "respiratory": {
        "critical": ["Oxygen", "Ventilator", "Nebulizer"],
        "recommended": ["Pulse Oximeter", "Suction Unit"],
        "optional": ["Intubation Kit", "CPAP Machine"],
    },
    "trauma": {
        "critical": ["Stretcher", "Immobilization Equipment", "Bandages"],
        "recommended": ["Splints", "Cervical Collar", "IV Setup"],
        "optional": ["Blood Pressure Monitor", "Oxygen"],
    },
    "stroke": {
        "critical": ["Blood Pressure Monitor", "Oxygen", "Glucose Monitor"],
        "recommended": ["IV Setup", "Stroke Assessment Tools"],
        "optional": ["Intubation Kit", "Ventilator"],
    },
    "general": {
        "critical": ["Basic Life Support", "Oxygen", "Stretcher"],
        "recommended": ["Defibrillator", "IV Setup", "Bandages", "Blood Pressure Monitor"],
        "optional": ["Ventilator", "ECG Monitor", "Suction Unit"],
    },
}


@dataclass(frozen=True)
class ScoringWeights:
    """Point weights of the ambulance score.

    Distance bands are ``(upper_km, points)`` pairs checked in order; anything
    past the last band earns ``far_points``.
    """

    distance_bands: Tuple[Tuple[float, float], ...] = ((2.0, 30.0), (5.0, 20.0), (10.0, 10.0))
    far_points: float = 5.0
    equipment_max: float = 35.0
    equipment_per_item: float = 5.0
    equipment_full_kit: int = 5
    specialty_match: float = 20.0
    specialty_partial: float = 10.0
    specialty_missing: float = 5.0
    readiness_max: float = 15.0
    rating_multiplier: float = 2.0
    rating_cap: float = 10.0
    default_rating_points: float = 5.0
    status_points: Dict[AmbulanceStatus, float] = field(
        default_factory=lambda: {AmbulanceStatus.AVAILABLE: 5.0, AmbulanceStatus.EN_ROUTE: 2.0}
    )
    critical_bonus: float = 10.0
    critical_bonus_radius_km: float = 3.0

    @property
    def distance_max(self) -> float:
        return max(points for _, points in self.distance_bands)


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass(frozen=True)
class ScoredAmbulance:
    ambulance: Ambulance
    score: int
    match_reason: str
    equipment_match: float
    distance_km: float
    distance_score: float
    readiness_score: float


@dataclass(frozen=True)
class SuitabilityReport:
    is_suitable: bool
    confidence: int
    warnings: List[str]
    strengths: List[str]


def distance_score(distance_km: float, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    for upper_km, points in weights.distance_bands:
        if distance_km < upper_km:
            return points
    return weights.far_points


def equipment_score(
    ambulance_equipment: List[str],
    required_equipment: Iterable[str],
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> Tuple[float, float]:
    """Return ``(points, match_percentage)``."""
    required = [item.lower() for item in required_equipment]
    if not required:
        if len(ambulance_equipment) >= weights.equipment_full_kit:
            return weights.equipment_max, 100.0
        return len(ambulance_equipment) * weights.equipment_per_item, 100.0

    available = [item.lower() for item in ambulance_equipment]
    matched = [req for req in required if any(req in equip or equip in req for equip in available)]
    match_percentage = len(matched) / len(required) * 100
    return round(match_percentage / 100 * weights.equipment_max), match_percentage


def detect_specialty(medical_needs: str, patient_age: Optional[int] = None) -> Optional[str]:
    needs = medical_needs.lower()
    for specialty, keywords in SPECIALTY_KEYWORDS.items():
        if any(keyword in needs for keyword in keywords):
            return specialty
    if patient_age is not None and patient_age < 12:
        return "pediatric"
    return None


def specialty_score(
    ambulance: Ambulance,
    criteria: SelectionCriteria,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> Tuple[float, Optional[str]]:
    specialty = detect_specialty(criteria.medical_needs, criteria.patient_age)
    if specialty is None:
        return weights.specialty_partial, None

    equipment = [item.lower() for item in ambulance.equipment_items()]
    wanted = SPECIALTY_EQUIPMENT[specialty]
    has_equipment = any(any(want in item for want in wanted) for item in equipment)
    found_reason, missing_reason = SPECIALTY_REASONS[specialty]
    if has_equipment:
        return weights.specialty_match, found_reason

    # cardiac and respiratory cases are penalised harder than the rest
    if specialty in ("cardiac", "respiratory"):
        return weights.specialty_missing, missing_reason
    return weights.specialty_partial, missing_reason


def readiness_score(ambulance: Ambulance, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    if ambulance.driver and ambulance.driver.rating:
        score = min(ambulance.driver.rating * weights.rating_multiplier, weights.rating_cap)
    else:
        score = weights.default_rating_points
    return score + weights.status_points.get(ambulance.status, 0.0)


def score_ambulance(
    ambulance: Ambulance,
    location: Coordinates,
    criteria: SelectionCriteria,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> ScoredAmbulance:
    reasons = []
    distance = haversine_km(location, ambulance.location)
    dist_points = distance_score(distance, weights)
    reasons.append(f"Distance: {distance:.2f}km ({dist_points / weights.distance_max * 10:.1f}/10)")

    equip_points, match_percentage = equipment_score(
        ambulance.equipment_items(), criteria.required_equipment, weights
    )
    reasons.append(f"Equipment: {match_percentage:.0f}% match ({equip_points / weights.equipment_max * 10:.1f}/10)")

    spec_points, spec_reason = specialty_score(ambulance, criteria, weights)
    if spec_reason:
        reasons.append(spec_reason)

    ready_points = readiness_score(ambulance, weights)
    reasons.append(f"Readiness: {ready_points / weights.readiness_max * 10:.1f}/10")

    total = dist_points + equip_points + spec_points + ready_points
    if criteria.severity == "critical" and distance < weights.critical_bonus_radius_km:
        total += weights.critical_bonus
        reasons.append("Critical proximity bonus")

    return ScoredAmbulance(
        ambulance=ambulance,
        score=round(total),
        match_reason=" | ".join(reasons),
        equipment_match=match_percentage,
        distance_km=round(distance, 3),
        distance_score=dist_points / weights.distance_max * 10,
        readiness_score=ready_points / weights.readiness_max * 10,
    )


def select_optimal_ambulance(
    ambulances: Iterable[Ambulance],
    location: Coordinates,
    criteria: SelectionCriteria,
    exclude_id: Optional[str] = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> List[ScoredAmbulance]:
    ranked = [
        score_ambulance(ambulance, location, criteria, weights)
        for ambulance in ambulances
        if ambulance.ambulance_id != exclude_id
    ]
    ranked.sort(key=lambda item: item.score, reverse=True)
    return ranked


def find_nearest_ambulance(
    ambulances: Iterable[Ambulance],
    location: Coordinates,
    exclude_id: Optional[str] = None,
) -> Optional[Ambulance]:
    nearest = None
    min_distance = float("inf")
    for ambulance in ambulances:
        if ambulance.ambulance_id == exclude_id:
            continue
        distance = haversine_km(location, ambulance.location)
        if distance < min_distance:
            min_distance = distance
            nearest = ambulance
    return nearest


def equipment_recommendations(medical_needs: str) -> Dict[str, List[str]]:
    needs = medical_needs.lower()
    if "cardiac" in needs or "heart" in needs:
        key = "cardiac"
    elif "breathing" in needs or "respiratory" in needs:
        key = "respiratory"
    elif "trauma" in needs or "accident" in needs:
        key = "trauma"
    elif "stroke" in needs or "neurological" in needs:
        key = "stroke"
    else:
        key = "general"
    return {tier: list(items) for tier, items in EQUIPMENT_RECOMMENDATIONS[key].items()}


def analyze_ambulance_suitability(
    ambulance: Ambulance,
    criteria: SelectionCriteria,
    location: Coordinates,
) -> SuitabilityReport:
    warnings: List[str] = []
    strengths: List[str] = []
    confidence = 100

    critical = equipment_recommendations(criteria.medical_needs)["critical"]
    available = [item.lower() for item in ambulance.equipment_items()]
    missing = [item for item in critical if not any(item.lower() in equip for equip in available)]
    if missing:
        warnings.append(f"Missing critical: {', '.join(missing)}")
        confidence -= len(missing) * 20
    else:
        strengths.append("All critical equipment available")

    if criteria.severity == "critical" and haversine_km(location, ambulance.location) > 5:
        warnings.append("Distance may be too far for critical case")
        confidence -= 15

    rating = ambulance.driver.rating if ambulance.driver else None
    if rating and rating >= 4.5:
        strengths.append("Highly rated driver")
    elif rating and rating < 3.5:
        warnings.append("Driver rating below average")
        confidence -= 10

    return SuitabilityReport(
        is_suitable=confidence >= 60 and not missing,
        confidence=max(confidence, 0),
        warnings=warnings,
        strengths=strengths,
    )
