from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from swift_responder.config import GEMINI_API_KEY, GEMINI_MODEL, HTTP_TIMEOUT_SECONDS
from swift_responder.errors import AIServiceError

logger = logging.getLogger(__name__)

GENERATE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

SUGGEST_HOSPITALS_PROMPT = """You are an AI assistant designed to suggest the best hospitals for a user based on \
their specific medical needs and current location. You have access to real-time data about hospital bed, ICU, NICU, \
oxygen, ventilator, and doctor availability.

Given the user's needs: {needs}, and their current location: {location},

Suggest a list of hospitals that are most suitable. For each hospital, include its name, address, the number of \
available beds, ICUs, NICUs, oxygen cylinders, ventilators, and doctors, and a suitability score (higher is better). \
Also, state the reason why this hospital is recommended. Order the results by suitability score, highest to lowest.

Respond with a JSON array only. Each element must have the keys: name, address, availableBeds, availableICUs, \
availableNICUs, availableOxygenCylinders, availableVentilators, availableDoctors, suitabilityScore, reason.
"""


class HospitalSuggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    address: str
    available_beds: int = Field(alias="availableBeds")
    available_icus: int = Field(alias="availableICUs")
    available_nicus: int = Field(alias="availableNICUs")
    available_oxygen_cylinders: int = Field(alias="availableOxygenCylinders")
    available_ventilators: int = Field(alias="availableVentilators")
    available_doctors: int = Field(alias="availableDoctors")
    suitability_score: float = Field(alias="suitabilityScore")
    reason: str


SUGGESTIONS_ADAPTER = TypeAdapter(List[HospitalSuggestion])


class GeminiClient:
    def __init__(
        self,
        api_key: str = GEMINI_API_KEY,
        model: str = GEMINI_MODEL,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS * 3,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.session = session or requests.Session()
        self.timeout = timeout

    def generate_json(self, prompt: str) -> Any:
        if not self.api_key:
            raise AIServiceError("Gemini API key is not configured")

        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        try:
            response = self.session.post(
                GENERATE_URL.format(model=self.model),
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload: Dict[str, Any] = response.json()
            text = payload["candidates"][0]["content"]["parts"][0]["text"]
            return json.loads(text)
        except requests.RequestException as exc:
            raise AIServiceError(f"Gemini request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise AIServiceError(f"Gemini returned an unexpected payload: {exc}") from exc

    def suggest_best_hospitals(self, needs: str, location: str) -> List[HospitalSuggestion]:
        raw = self.generate_json(SUGGEST_HOSPITALS_PROMPT.format(needs=needs, location=location))
        try:
            suggestions = SUGGESTIONS_ADAPTER.validate_python(raw)
        except ValidationError as exc:
            raise AIServiceError(f"Gemini output did not match the hospital schema: {exc}") from exc
        logger.info("Gemini returned %d hospital suggestions", len(suggestions))
        return suggestions
