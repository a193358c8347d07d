from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from swift_responder.models import (
    Coordinates,
    EmergencyRequest,
    EmergencySeverity,
    EmergencyType,
    PatientInfo,
    SelectionCriteria,
    Vitals,
)


class DispatchPayload(BaseModel):
    medical_needs: str = ""
    severity: str = "urgent"
    required_equipment: List[str] = Field(default_factory=list)
    patient_age: Optional[int] = Field(default=None, ge=0, le=130)
    special_conditions: List[str] = Field(default_factory=list)
    use_ai: Optional[bool] = None
    wait: bool = False

    def to_criteria(self) -> SelectionCriteria:
        return SelectionCriteria(
            medical_needs=self.medical_needs,
            severity=self.severity,
            required_equipment=tuple(self.required_equipment),
            patient_age=self.patient_age,
            special_conditions=tuple(self.special_conditions),
        )


class ResetPayload(BaseModel):
    notes: Optional[str] = None


class LocationUpdate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy_m: Optional[float] = Field(default=None, ge=0)
    speed_mps: Optional[float] = None
    heading: Optional[float] = None


class LocationError(BaseModel):
    code: int


class LocationMode(BaseModel):
    live: bool


class HospitalSuggestRequest(BaseModel):
    needs: str
    location: str


class CoordinatesPayload(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class VitalsPayload(BaseModel):
    heart_rate: Optional[int] = None
    blood_pressure: Optional[str] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[int] = None
    oxygen_saturation: Optional[int] = None


class PatientPayload(BaseModel):
    age: Optional[int] = None
    gender: Optional[str] = None
    consciousness: Optional[str] = None
    chief_complaint: Optional[str] = None
    allergies: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    vitals: Optional[VitalsPayload] = None


class EmergencyRequestCreate(BaseModel):
    severity: EmergencySeverity
    emergency_type: EmergencyType
    location: CoordinatesPayload
    requested_by: str = Field(min_length=1)
    patient_info: Optional[PatientPayload] = None
    notes: Optional[str] = None

    def to_request(self, request_id: str, timestamp: float) -> EmergencyRequest:
        patient = None
        if self.patient_info:
            info = self.patient_info
            patient = PatientInfo(
                age=info.age,
                gender=info.gender,
                consciousness=info.consciousness,
                chief_complaint=info.chief_complaint,
                allergies=tuple(info.allergies),
                medications=tuple(info.medications),
                vitals=Vitals(**info.vitals.model_dump()) if info.vitals else None,
            )
        return EmergencyRequest(
            request_id=request_id,
            timestamp=timestamp,
            severity=self.severity,
            emergency_type=self.emergency_type,
            location=Coordinates(self.location.latitude, self.location.longitude),
            requested_by=self.requested_by,
            patient_info=patient,
            notes=self.notes,
        )


class RequestStatusUpdate(BaseModel):
    status: str = Field(pattern="^(pending|dispatched|completed|cancelled)$")


class PreferenceValue(BaseModel):
    value: Any
