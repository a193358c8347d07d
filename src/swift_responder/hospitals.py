"""Hospital search with an ordered fallback chain.

Each provider either returns a non-empty list of hospitals or fails; the
finder walks the chain (AI ranking, quick places search, wide places search,
static record) and keeps the first non-empty answer.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional

from swift_responder.errors import AIServiceError
from swift_responder.gemini import GeminiClient, HospitalSuggestion
from swift_responder.models import Coordinates, Hospital, SelectionCriteria
from swift_responder.places import PlacesClient

logger = logging.getLogger(__name__)

MIN_FIELD_LENGTH = 3


def describe_location(location: Coordinates) -> str:
    return f"Latitude {location.latitude:.4f}, Longitude {location.longitude:.4f}"


def build_ranking_context(hospitals: List[Hospital], criteria: SelectionCriteria) -> str:
    entries = []
    for index, hospital in enumerate(hospitals, start=1):
        distance = f"{hospital.distance_km:.2f}" if hospital.distance_km is not None else "Unknown"
        entries.append(
            f"{index}. {hospital.name}\n"
            f"   - Address: {hospital.address}\n"
            f"   - Distance: {distance} km away\n"
            f"   - Rating: {hospital.rating or 'N/A'}/5 ({hospital.review_count or 0} reviews)\n"
            f"   - Phone: {hospital.phone or 'Not available'}\n"
            f"   - Specialties: {', '.join(hospital.specialties) or 'General'}\n"
            f"   - Wait Time: ~{hospital.wait_time or 'Unknown'} minutes\n"
            f"   - Available Beds: {hospital.available_beds or 'Unknown'}\n"
            f"   - Available ICUs: {hospital.available_icus or 'Unknown'}"
        )

    age_line = f"- Patient Age: {criteria.patient_age} years\n" if criteria.patient_age else ""
    return (
        "Medical Situation:\n"
        f"- Primary Need: {criteria.medical_needs or 'general emergency'}\n"
        f"- Severity Level: {criteria.severity.upper()}\n"
        f"{age_line}\n"
        "Available Hospitals in Area:\n"
        + "\n\n".join(entries)
        + "\n\nPlease analyze these REAL hospitals and rank them based on:\n"
        "1. Distance from patient location\n"
        "2. Google ratings and reviews (indicates quality)\n"
        "3. Specialties matching the medical need\n"
        "4. Estimated wait times\n"
        f"5. Severity of the emergency ({criteria.severity})\n\n"
        "Provide realistic availability estimates since exact bed counts aren't available from the places service.\n"
    )


def _names_match(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return a in b or b in a


def merge_suggestions(
    suggestions: Iterable[HospitalSuggestion],
    hospitals: List[Hospital],
    location: Coordinates,
) -> List[Hospital]:
    merged = []
    for suggestion in suggestions:
        capacity = dict(
            available_beds=suggestion.available_beds,
            available_icus=suggestion.available_icus,
            available_nicus=suggestion.available_nicus,
            available_oxygen_cylinders=suggestion.available_oxygen_cylinders,
            available_ventilators=suggestion.available_ventilators,
            available_doctors=suggestion.available_doctors,
            suitability_score=suggestion.suitability_score,
            reason=suggestion.reason,
            ai_reasoning=suggestion.reason,
            ai_score=suggestion.suitability_score,
        )
        match = next((h for h in hospitals if _names_match(h.name, suggestion.name)), None)
        if match is not None:
            merged.append(replace(match, **capacity))
        else:
            merged.append(
                Hospital(
                    name=suggestion.name,
                    address=suggestion.address,
                    location=location,
                    phone="Call directory assistance",
                    wait_time=15,
                    distance_km=5.0,
                    **capacity,
                )
            )
    return merged


class HospitalProvider(ABC):
    name = "provider"
    requires_ai = False

    @abstractmethod
    def find(self, location: Coordinates, criteria: SelectionCriteria) -> List[Hospital]:
        raise NotImplementedError


class AIRankedHospitalProvider(HospitalProvider):
    name = "ai-ranked"
    requires_ai = True

    def __init__(self, places: PlacesClient, ai: GeminiClient, radius: int = 10_000) -> None:
        self.places = places
        self.ai = ai
        self.radius = radius

    def find(self, location: Coordinates, criteria: SelectionCriteria) -> List[Hospital]:
        hospitals = self.places.search_nearby_hospitals(location, self.radius)
        if not hospitals:
            logger.info("No hospitals found nearby for AI ranking")
            return []

        logger.info("Sending %d hospitals to the AI ranking prompt", len(hospitals))
        suggestions = self.ai.suggest_best_hospitals(
            needs=build_ranking_context(hospitals, criteria),
            location=describe_location(location),
        )
        ranked = merge_suggestions(suggestions, hospitals, location)
        logger.info("AI ranking enhanced %d hospitals", len(ranked))
        return ranked


class PlacesHospitalProvider(HospitalProvider):
    def __init__(self, places: PlacesClient, radius: int = 10_000, name: str = "quick-search") -> None:
        self.places = places
        self.radius = radius
        self.name = name

    def find(self, location: Coordinates, criteria: SelectionCriteria) -> List[Hospital]:
        return self.places.search_nearby_hospitals(location, self.radius)


class StaticHospitalProvider(HospitalProvider):
    name = "static"

    def __init__(self, hospital: Hospital) -> None:
        self.hospital = hospital

    def find(self, location: Coordinates, criteria: SelectionCriteria) -> List[Hospital]:
        return [self.hospital]


class HospitalFinder:
    def __init__(self, providers: Iterable[HospitalProvider]) -> None:
        self.providers = list(providers)

    def find(
        self,
        location: Coordinates,
        criteria: Optional[SelectionCriteria] = None,
        use_ai: bool = False,
    ) -> List[Hospital]:
        criteria = criteria or SelectionCriteria()
        for provider in self.providers:
            if provider.requires_ai and not use_ai:
                continue
            try:
                hospitals = provider.find(location, criteria)
            except Exception as exc:  # every provider failure degrades to the next one
                logger.warning("Hospital provider %s failed: %s", provider.name, exc)
                continue
            if hospitals:
                logger.info("Hospital provider %s returned %d hospitals", provider.name, len(hospitals))
                return hospitals
            logger.warning("Hospital provider %s returned no hospitals", provider.name)
        return []


def build_hospital_finder(
    places: PlacesClient,
    ai: GeminiClient,
    fallback_hospital: Hospital,
    radius: int = 10_000,
    wide_radius: int = 25_000,
) -> HospitalFinder:
    return HospitalFinder(
        [
            AIRankedHospitalProvider(places, ai, radius),
            PlacesHospitalProvider(places, radius, name="quick-search"),
            PlacesHospitalProvider(places, wide_radius, name="wide-search"),
            StaticHospitalProvider(fallback_hospital),
        ]
    )


@dataclass(frozen=True)
class HospitalAnalysis:
    suitability_score: float
    reasoning: str
    estimated_capacity: Dict[str, int]


def hospital_ai_analysis(
    ai: GeminiClient,
    hospital: Hospital,
    medical_needs: str,
    location: Coordinates,
) -> HospitalAnalysis:
    distance = f"{hospital.distance_km:.2f} km from patient" if hospital.distance_km is not None else "Unknown"
    context = (
        f"Analyze this specific hospital for a patient with: {medical_needs}\n\n"
        "Hospital Details:\n"
        f"- Name: {hospital.name}\n"
        f"- Address: {hospital.address}\n"
        f"- Distance: {distance}\n"
        f"- Rating: {hospital.rating or 'N/A'}/5\n"
        f"- Specialties: {', '.join(hospital.specialties) or 'General'}\n"
        f"- Current Wait Time: {hospital.wait_time or 'Unknown'} minutes\n\n"
        "Provide:\n1. Suitability score (0-10)\n2. Detailed reasoning for this score\n"
        "3. Estimated current capacity (beds, ICUs, doctors available)\n"
    )
    try:
        result = ai.suggest_best_hospitals(
            needs=context, location=f"Latitude {location.latitude}, Longitude {location.longitude}"
        )
        if not result:
            raise AIServiceError("No analysis returned from the AI service")
    except AIServiceError as exc:
        logger.warning("Hospital AI analysis failed for %s: %s", hospital.name, exc)
        return HospitalAnalysis(
            suitability_score=7.0,
            reasoning="Analysis unavailable - using default assessment",
            estimated_capacity={"beds": 10, "icus": 3, "doctors": 5},
        )

    analysis = result[0]
    return HospitalAnalysis(
        suitability_score=analysis.suitability_score,
        reasoning=analysis.reason,
        estimated_capacity={
            "beds": analysis.available_beds,
            "icus": analysis.available_icus,
            "doctors": analysis.available_doctors,
        },
    )


@dataclass
class SuggestionResult:
    message: str
    data: Optional[List[HospitalSuggestion]] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)


def suggest_hospitals(ai: GeminiClient, needs: str, location: str) -> SuggestionResult:
    errors: Dict[str, List[str]] = {}
    if len((needs or "").strip()) < MIN_FIELD_LENGTH:
        errors["needs"] = ["Medical need must be at least 3 characters."]
    if len((location or "").strip()) < MIN_FIELD_LENGTH:
        errors["location"] = ["Location must be at least 3 characters."]
    if errors:
        return SuggestionResult(message="Invalid input. Please check the fields.", errors=errors)

    try:
        results = ai.suggest_best_hospitals(needs=needs.strip(), location=location.strip())
    except AIServiceError as exc:
        logger.error("Hospital suggestion failed: %s", exc)
        return SuggestionResult(message="An error occurred while fetching suggestions. Please try again later.")

    if results:
        return SuggestionResult(message="Suggestions found.", data=results)
    return SuggestionResult(message="No suitable hospitals found for the given criteria.", data=[])
