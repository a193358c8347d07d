from __future__ import annotations

import functools
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from swift_responder.config import GOOGLE_MAPS_API_KEY, HTTP_TIMEOUT_SECONDS
from swift_responder.errors import PlacesSearchError
from swift_responder.geo import haversine_km
from swift_responder.models import Coordinates, Hospital

logger = logging.getLogger(__name__)

NEARBY_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
PLACE_DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
SEARCH_KEYWORD = "emergency hospital medical center clinic"
DETAIL_FIELDS = (
    "name,formatted_address,formatted_phone_number,geometry,rating,"
    "user_ratings_total,opening_hours,website,types"
)

CAPACITY_RANGES = {
    "small": {"beds": (3, 8), "icus": (1, 3), "nicus": (0, 1), "oxygen": (5, 10), "ventilators": (2, 5), "doctors": (2, 5)},
    "medium": {
        "beds": (8, 20),
        "icus": (3, 8),
        "nicus": (1, 3),
        "oxygen": (10, 25),
        "ventilators": (5, 12),
        "doctors": (5, 12),
    },
    "large": {
        "beds": (15, 35),
        "icus": (8, 15),
        "nicus": (3, 8),
        "oxygen": (20, 50),
        "ventilators": (10, 20),
        "doctors": (10, 25),
    },
}

SIZE_SPECIALTIES = {
    "large": (
        ["General Medicine", "Surgery", "Cardiology", "Neurology", "Orthopedics", "Trauma Care",
         "Intensive Care", "Radiology", "Anesthesiology"],
        (6, 8),
    ),
    "medium": (["General Medicine", "Surgery", "Cardiology", "Orthopedics", "Radiology"], (3, 5)),
    "small": (["Primary Care", "General Medicine", "Minor Surgery"], (2, 3)),
}

NAME_SPECIALTIES = (
    (("children", "pediatric"), ("Pediatrics", "Neonatology")),
    (("cardiac", "heart"), ("Cardiology", "Cardiac Surgery")),
    (("cancer", "oncology"), ("Oncology", "Radiation Therapy")),
    (("women", "maternity"), ("Obstetrics", "Gynecology")),
    (("trauma", "regional"), ("Trauma Surgery", "Emergency Care")),
)


@dataclass(frozen=True)
class Capacity:
    beds: int
    icus: int
    nicus: int
    oxygen: int
    ventilators: int
    doctors: int


def infer_hospital_size(rating: float, review_count: int, name: str) -> str:
    name = name.lower()
    large_markers = ("medical center", "university", "regional", "general hospital")
    if review_count > 1000 or any(marker in name for marker in large_markers):
        return "large"
    if review_count < 200 or "clinic" in name or "urgent care" in name:
        return "small"
    return "medium"


def generate_capacity(size: str, distance_km: float, is_open: bool, rng: random.Random) -> Capacity:
    ranges = CAPACITY_RANGES[size]
    values = {key: rng.randint(low, high) for key, (low, high) in ranges.items()}

    # closed facilities run a night shift
    if not is_open:
        values["beds"] = int(values["beds"] * 0.6)
        values["icus"] = int(values["icus"] * 0.7)
        values["doctors"] = int(values["doctors"] * 0.4)

    if distance_km > 5:
        values["beds"] = max(1, int(values["beds"] * 0.8))
        values["icus"] = max(1, int(values["icus"] * 0.8))

    return Capacity(**values)


def suitability_score(rating: float, distance_km: float, is_open: bool, capacity: Capacity) -> float:
    score = 5.0

    if rating >= 4.5:
        score += 3
    elif rating >= 4.0:
        score += 2.5
    elif rating >= 3.5:
        score += 2
    elif rating >= 3.0:
        score += 1

    if distance_km < 1:
        score += 2
    elif distance_km < 3:
        score += 1.5
    elif distance_km < 5:
        score += 1
    elif distance_km < 10:
        score += 0.5

    score += 2 if is_open else 0.5

    total_capacity = capacity.beds + capacity.icus + capacity.doctors
    if total_capacity > 30:
        score += 3
    elif total_capacity > 20:
        score += 2
    elif total_capacity > 10:
        score += 1

    return min(10.0, max(1.0, score))


def estimate_wait_time(distance_km: float, available_beds: int, is_open: bool, rng: random.Random) -> int:
    wait = int(distance_km / 48 * 60)
    if available_beds > 15:
        wait += rng.randint(5, 10)
    elif available_beds > 8:
        wait += rng.randint(10, 20)
    else:
        wait += rng.randint(15, 30)
    if not is_open:
        wait += rng.randint(5, 15)
    return wait


def suitability_reason(rating: float, review_count: int, distance_km: float, is_open: bool, capacity: Capacity) -> str:
    reasons = []

    if distance_km < 1:
        reasons.append("Extremely close - under 1 km")
    elif distance_km < 2:
        reasons.append("Very close proximity")
    elif distance_km < 5:
        reasons.append("Good location within 5 km")
    else:
        reasons.append(f"{distance_km:.1f} km away")

    if rating >= 4.5:
        reasons.append("Excellent patient reviews (4.5+)")
    elif rating >= 4.0:
        reasons.append("Highly rated (4.0+)")
    elif rating >= 3.5:
        reasons.append("Good ratings (3.5+)")

    if review_count > 1000:
        reasons.append("Well-established facility")
    elif review_count > 500:
        reasons.append("Trusted by community")

    if capacity.beds > 15:
        reasons.append(f"High bed availability ({capacity.beds} beds)")
    elif capacity.beds > 8:
        reasons.append(f"Adequate capacity ({capacity.beds} beds)")
    else:
        reasons.append(f"Limited beds ({capacity.beds} available)")

    if capacity.icus >= 5:
        reasons.append(f"Well-equipped ICU ({capacity.icus} units)")
    if capacity.doctors >= 10:
        reasons.append(f"Well-staffed ({capacity.doctors} doctors)")

    reasons.append("Currently open" if is_open else "24/7 emergency services available")
    return " | ".join(reasons)


def infer_specialties(size: str, name: str, rng: random.Random) -> List[str]:
    name = name.lower()
    specialties = ["Emergency Medicine"]
    for markers, extra in NAME_SPECIALTIES:
        if any(marker in name for marker in markers):
            specialties.extend(extra)

    pool, (low, high) = SIZE_SPECIALTIES[size]
    for index in range(rng.randint(low, high)):
        specialties.append(pool[index % len(pool)])

    if len(set(specialties)) == 1:
        specialties.extend(["General Medicine", "Primary Care"])
    return list(dict.fromkeys(specialties))


def place_to_hospital(place: Dict[str, Any], origin: Coordinates, index: int, rng: random.Random) -> Hospital:
    geometry = (place.get("geometry") or {}).get("location")
    location = Coordinates(geometry["lat"], geometry["lng"]) if geometry else origin
    distance = haversine_km(origin, location)

    name = place.get("name") or "Medical Center"
    rating = place.get("rating") or 0.0
    review_count = place.get("user_ratings_total") or 0
    is_open = (place.get("opening_hours") or {}).get("open_now", True)
    operational = place.get("business_status", "OPERATIONAL") == "OPERATIONAL"

    size = infer_hospital_size(rating, review_count, name)
    capacity = generate_capacity(size, distance, is_open, rng)

    return Hospital(
        hospital_id=place.get("place_id") or f"hospital-{index}",
        name=name,
        address=place.get("vicinity") or place.get("formatted_address") or "Address unavailable",
        location=location,
        distance_km=distance,
        available_beds=capacity.beds,
        available_icus=capacity.icus,
        available_nicus=capacity.nicus,
        available_oxygen_cylinders=capacity.oxygen,
        available_ventilators=capacity.ventilators,
        available_doctors=capacity.doctors,
        suitability_score=suitability_score(rating, distance, is_open, capacity),
        reason=suitability_reason(rating, review_count, distance, is_open, capacity),
        phone=place.get("formatted_phone_number"),
        specialties=tuple(infer_specialties(size, name, rng)),
        wait_time=estimate_wait_time(distance, capacity.beds, is_open, rng),
        rating=place.get("rating"),
        review_count=place.get("user_ratings_total"),
        is_open=is_open and operational,
    )


def compare_hospitals(a: Hospital, b: Hospital) -> int:
    if bool(a.is_open) != bool(b.is_open):
        return -1 if a.is_open else 1
    if abs(a.suitability_score - b.suitability_score) > 0.5:
        return -1 if a.suitability_score > b.suitability_score else 1
    da, db = a.distance_km or 0.0, b.distance_km or 0.0
    return (da > db) - (da < db)


def sort_hospitals(hospitals: List[Hospital]) -> List[Hospital]:
    return sorted(hospitals, key=functools.cmp_to_key(compare_hospitals))


class PlacesClient:
    """Google Places web-service client that turns nearby hospitals into ``Hospital`` records."""

    def __init__(
        self,
        api_key: str = GOOGLE_MAPS_API_KEY,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout
        self.rng = rng or random.Random()

    def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise PlacesSearchError("Google Maps API key is not configured")
        try:
            response = self.session.get(url, params={**params, "key": self.api_key}, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise PlacesSearchError(f"Places request failed: {exc}") from exc

        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS"):
            raise PlacesSearchError(f"Places search failed: {status} {data.get('error_message', '')}".strip())
        return data

    def search_nearby_hospitals(self, location: Coordinates, radius: int = 10_000) -> List[Hospital]:
        logger.info("Searching hospitals near %.5f,%.5f (radius %sm)", location.latitude, location.longitude, radius)
        data = self._get(
            NEARBY_SEARCH_URL,
            {
                "location": f"{location.latitude},{location.longitude}",
                "radius": radius,
                "type": "hospital",
                "keyword": SEARCH_KEYWORD,
            },
        )
        places = [p for p in data.get("results", []) if p.get("name") and (p.get("geometry") or {}).get("location")]
        hospitals = sort_hospitals([place_to_hospital(p, location, i, self.rng) for i, p in enumerate(places)])
        if hospitals:
            logger.info("Found %d hospitals, nearest ranked %s (%.2f km)", len(hospitals), hospitals[0].name,
                        hospitals[0].distance_km or 0.0)
        return hospitals

    def get_hospital_details(self, place_id: str) -> Dict[str, Any]:
        data = self._get(PLACE_DETAILS_URL, {"place_id": place_id, "fields": DETAIL_FIELDS})
        place = data.get("result") or {}
        geometry = (place.get("geometry") or {}).get("location")
        return {
            "name": place.get("name") or "Unknown Hospital",
            "address": place.get("formatted_address") or "Address unavailable",
            "phone": place.get("formatted_phone_number"),
            "location": Coordinates(geometry["lat"], geometry["lng"]) if geometry else None,
        }
