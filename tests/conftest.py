from __future__ import annotations

from typing import List, Optional

import pytest

from swift_responder.config import TrackerConfig
from swift_responder.errors import AIServiceError, DirectionsError, PlacesSearchError
from swift_responder.hospitals import HospitalFinder, StaticHospitalProvider
from swift_responder.location import LiveLocationService
from swift_responder.models import Ambulance, Coordinates, Driver, Equipment, Hospital, RouteInfo
from swift_responder.routing import RouteProvider
from swift_responder.storage import InMemoryDispatchStore
from swift_responder.tracker import AmbulanceTracker

AMBULANCE_START = Coordinates(34.06, -118.25)
HOSPITAL_POINT = Coordinates(34.07, -118.24)


class OfflinePlaces:
    def __init__(self) -> None:
        self.calls: List[int] = []

    def search_nearby_hospitals(self, location: Coordinates, radius: int = 10_000) -> List[Hospital]:
        self.calls.append(radius)
        raise PlacesSearchError("places offline")


class OfflineAI:
    def suggest_best_hospitals(self, needs: str, location: str):
        raise AIServiceError("ai offline")


class OfflineDirections:
    def get_route(self, origin: Coordinates, destination: Coordinates) -> RouteInfo:
        raise DirectionsError("directions offline")


class StaticDirections:
    def __init__(self, route: RouteInfo) -> None:
        self.route = route
        self.calls = 0

    def get_route(self, origin: Coordinates, destination: Coordinates) -> RouteInfo:
        self.calls += 1
        return self.route


def make_hospital(name: str = "Test Medical Center", location: Optional[Coordinates] = HOSPITAL_POINT) -> Hospital:
    return Hospital(
        name=name,
        address="1 Test Way",
        available_beds=10,
        available_icus=2,
        available_nicus=1,
        available_oxygen_cylinders=5,
        available_ventilators=3,
        available_doctors=4,
        suitability_score=8.0,
        reason="Close by",
        location=location,
    )


def make_ambulance(ambulance_id: str = "AMB-T1", location: Coordinates = AMBULANCE_START) -> Ambulance:
    return Ambulance(
        ambulance_id=ambulance_id,
        vehicle="Test Van",
        location=location,
        driver=Driver(name="Sam Reed", phone="555-0100", rating=4.6),
        equipment=Equipment(defibrillator=True, oxygen=True),
    )


def make_tracker(
    ambulances: Optional[List[Ambulance]] = None,
    finder: Optional[HospitalFinder] = None,
    directions=None,
    store=None,
    config: Optional[TrackerConfig] = None,
    **kwargs,
) -> AmbulanceTracker:
    return AmbulanceTracker(
        config=config or TrackerConfig(dispatch_delay_s=0, auto_tick=False),
        location=LiveLocationService(AMBULANCE_START),
        hospital_finder=finder or HospitalFinder([StaticHospitalProvider(make_hospital())]),
        route_provider=RouteProvider(directions or OfflineDirections()),
        store=store if store is not None else InMemoryDispatchStore(),
        ambulances=[make_ambulance()] if ambulances is None else ambulances,
        **kwargs,
    )


@pytest.fixture
def tracker() -> AmbulanceTracker:
    return make_tracker()
