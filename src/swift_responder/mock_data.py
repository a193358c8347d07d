from __future__ import annotations

from typing import List

from swift_responder.geo import offset
from swift_responder.models import (
    Ambulance,
    AmbulanceStatus,
    AmbulanceType,
    Coordinates,
    Driver,
    Equipment,
    Hospital,
)

# Downtown Los Angeles
DEFAULT_CENTER = Coordinates(34.0522, -118.2437)


def build_initial_ambulances(center: Coordinates = DEFAULT_CENTER) -> List[Ambulance]:
    return [
        Ambulance(
            ambulance_id="AMB-001",
            vehicle="Ford Transit Custom",
            location=offset(center, 0.01, -0.01),
            ambulance_type=AmbulanceType.ADVANCED,
            status=AmbulanceStatus.AVAILABLE,
            driver=Driver(name="Maria Lopez", phone="+1-213-555-0101", rating=4.8),
            equipment=Equipment(
                defibrillator=True,
                oxygen=True,
                ventilator=False,
                medications=("aspirin", "nitroglycerin", "epinephrine"),
            ),
        ),
        Ambulance(
            ambulance_id="AMB-007",
            vehicle="Mercedes-Benz Sprinter",
            location=offset(center, -0.01, 0.01),
            ambulance_type=AmbulanceType.CRITICAL_CARE,
            status=AmbulanceStatus.AVAILABLE,
            driver=Driver(name="James Carter", phone="+1-213-555-0107", rating=4.5),
            equipment=Equipment(
                defibrillator=True,
                oxygen=True,
                ventilator=True,
                medications=("epinephrine", "albuterol", "stretcher", "splints"),
            ),
        ),
        Ambulance(
            ambulance_id="AMB-003",
            vehicle="Ford E-Series",
            location=offset(center, 0.005, 0.015),
            ambulance_type=AmbulanceType.BASIC,
            status=AmbulanceStatus.AVAILABLE,
            driver=Driver(name="Priya Shah", phone="+1-213-555-0103", rating=4.1),
            equipment=Equipment(oxygen=True, medications=("bandages", "pediatric kit")),
        ),
    ]


def build_fallback_hospital(center: Coordinates = DEFAULT_CENTER) -> Hospital:
    return Hospital(
        name="General Hospital",
        address="123 Main St, Los Angeles, CA",
        available_beds=12,
        available_icus=3,
        available_nicus=2,
        available_oxygen_cylinders=8,
        available_ventilators=5,
        available_doctors=7,
        suitability_score=9.2,
        reason="Top-rated for cardiac emergencies and has immediate availability.",
        location=offset(center, 0.02, 0.02),
    )
