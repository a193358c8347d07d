from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class AmbulanceType(str, Enum):
    BASIC = "Basic Life Support"
    ADVANCED = "Advanced Life Support"
    CRITICAL_CARE = "Critical Care Transport"
    NEONATAL = "Neonatal Transport"


class AmbulanceStatus(str, Enum):
    AVAILABLE = "available"
    DISPATCHED = "dispatched"
    EN_ROUTE = "en_route"
    ON_SCENE = "on_scene"
    TRANSPORTING = "transporting"
    AT_HOSPITAL = "at_hospital"
    MAINTENANCE = "maintenance"


class EmergencySeverity(str, Enum):
    CRITICAL = "Critical - Life Threatening"
    URGENT = "Urgent - Needs Immediate Care"
    NON_URGENT = "Non-Urgent - Stable"


class EmergencyType(str, Enum):
    CARDIAC = "Cardiac Emergency"
    TRAUMA = "Trauma/Injury"
    RESPIRATORY = "Respiratory Distress"
    STROKE = "Stroke"
    PEDIATRIC = "Pediatric Emergency"
    OBSTETRIC = "Obstetric Emergency"
    PSYCHIATRIC = "Psychiatric Emergency"
    OTHER = "Other Medical Emergency"


class DispatchOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TRANSFERRED = "transferred"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinates":
        return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))


Route = Tuple[Coordinates, ...]


@dataclass(frozen=True)
class Driver:
    name: str
    phone: str
    rating: float


@dataclass(frozen=True)
class Equipment:
    defibrillator: bool = False
    oxygen: bool = False
    ventilator: bool = False
    medications: Tuple[str, ...] = ()

    def items(self) -> List[str]:
        items = []
        if self.defibrillator:
            items.append("defibrillator")
        if self.oxygen:
            items.append("oxygen")
        if self.ventilator:
            items.append("ventilator")
        items.extend(self.medications)
        return items


@dataclass(frozen=True)
class Ambulance:
    ambulance_id: str
    vehicle: str
    location: Coordinates
    ambulance_type: AmbulanceType = AmbulanceType.BASIC
    status: AmbulanceStatus = AmbulanceStatus.AVAILABLE
    driver: Optional[Driver] = None
    equipment: Optional[Equipment] = None

    def equipment_items(self) -> List[str]:
        return self.equipment.items() if self.equipment else []

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["ambulance_type"] = self.ambulance_type.value
        data["status"] = self.status.value
        if self.equipment:
            data["equipment"]["medications"] = list(self.equipment.medications)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ambulance":
        driver = data.get("driver")
        equipment = data.get("equipment")
        return cls(
            ambulance_id=data["ambulance_id"],
            vehicle=data["vehicle"],
            location=Coordinates.from_dict(data["location"]),
            ambulance_type=AmbulanceType(data.get("ambulance_type", AmbulanceType.BASIC.value)),
            status=AmbulanceStatus(data.get("status", AmbulanceStatus.AVAILABLE.value)),
            driver=Driver(**driver) if driver else None,
            equipment=(
                Equipment(
                    defibrillator=equipment.get("defibrillator", False),
                    oxygen=equipment.get("oxygen", False),
                    ventilator=equipment.get("ventilator", False),
                    medications=tuple(equipment.get("medications", ())),
                )
                if equipment
                else None
            ),
        )


@dataclass(frozen=True)
class Hospital:
    name: str
    address: str
    available_beds: int
    available_icus: int
    available_nicus: int
    available_oxygen_cylinders: int
    available_ventilators: int
    available_doctors: int
    suitability_score: float
    reason: str
    location: Optional[Coordinates] = None
    hospital_id: Optional[str] = None
    phone: Optional[str] = None
    specialties: Tuple[str, ...] = ()
    wait_time: Optional[int] = None
    distance_km: Optional[float] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    is_open: Optional[bool] = None
    ai_reasoning: Optional[str] = None
    ai_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["specialties"] = list(self.specialties)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Hospital":
        values = dict(data)
        if values.get("location"):
            values["location"] = Coordinates.from_dict(values["location"])
        values["specialties"] = tuple(values.get("specialties") or ())
        return cls(**values)


@dataclass(frozen=True)
class RouteStep:
    instruction: str
    distance_m: float
    duration_s: float
    start_location: Coordinates
    end_location: Coordinates


@dataclass(frozen=True)
class RouteInfo:
    path: Route
    distance_km: float
    duration_min: float
    duration_in_traffic_min: Optional[float] = None
    polyline: str = ""
    steps: Tuple[RouteStep, ...] = ()
    source: str = "directions"

    @property
    def effective_duration_min(self) -> float:
        if self.duration_in_traffic_min is not None:
            return self.duration_in_traffic_min
        return self.duration_min


@dataclass(frozen=True)
class Vitals:
    heart_rate: Optional[int] = None
    blood_pressure: Optional[str] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[int] = None
    oxygen_saturation: Optional[int] = None


@dataclass(frozen=True)
class PatientInfo:
    age: Optional[int] = None
    gender: Optional[str] = None
    consciousness: Optional[str] = None
    chief_complaint: Optional[str] = None
    allergies: Tuple[str, ...] = ()
    medications: Tuple[str, ...] = ()
    vitals: Optional[Vitals] = None


@dataclass(frozen=True)
class EmergencyRequest:
    request_id: str
    timestamp: float
    severity: EmergencySeverity
    emergency_type: EmergencyType
    location: Coordinates
    requested_by: str
    status: str = "pending"
    patient_info: Optional[PatientInfo] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["emergency_type"] = self.emergency_type.value
        if self.patient_info:
            data["patient_info"]["allergies"] = list(self.patient_info.allergies)
            data["patient_info"]["medications"] = list(self.patient_info.medications)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmergencyRequest":
        patient = data.get("patient_info")
        patient_info = None
        if patient:
            vitals = patient.get("vitals")
            patient_info = PatientInfo(
                age=patient.get("age"),
                gender=patient.get("gender"),
                consciousness=patient.get("consciousness"),
                chief_complaint=patient.get("chief_complaint"),
                allergies=tuple(patient.get("allergies") or ()),
                medications=tuple(patient.get("medications") or ()),
                vitals=Vitals(**vitals) if vitals else None,
            )
        return cls(
            request_id=data["request_id"],
            timestamp=float(data["timestamp"]),
            severity=EmergencySeverity(data["severity"]),
            emergency_type=EmergencyType(data["emergency_type"]),
            location=Coordinates.from_dict(data["location"]),
            requested_by=data["requested_by"],
            status=data.get("status", "pending"),
            patient_info=patient_info,
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class DispatchHistory:
    history_id: str
    timestamp: float
    ambulance: Ambulance
    hospital: Hospital
    duration_minutes: int
    outcome: DispatchOutcome
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "history_id": self.history_id,
            "timestamp": self.timestamp,
            "ambulance": self.ambulance.to_dict(),
            "hospital": self.hospital.to_dict(),
            "duration_minutes": self.duration_minutes,
            "outcome": self.outcome.value,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DispatchHistory":
        return cls(
            history_id=data["history_id"],
            timestamp=float(data["timestamp"]),
            ambulance=Ambulance.from_dict(data["ambulance"]),
            hospital=Hospital.from_dict(data["hospital"]),
            duration_minutes=int(data["duration_minutes"]),
            outcome=DispatchOutcome(data["outcome"]),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class SelectionCriteria:
    medical_needs: str = ""
    severity: str = "urgent"
    required_equipment: Tuple[str, ...] = ()
    patient_age: Optional[int] = None
    special_conditions: Tuple[str, ...] = ()
