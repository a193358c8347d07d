import random
from typing import Any, Dict, List

import pytest
import requests

from conftest import OfflineAI, OfflinePlaces, make_hospital
from swift_responder.errors import AIServiceError, PlacesSearchError
from swift_responder.gemini import GeminiClient, HospitalSuggestion
from swift_responder.hospitals import (
    AIRankedHospitalProvider,
    HospitalFinder,
    PlacesHospitalProvider,
    StaticHospitalProvider,
    build_hospital_finder,
    hospital_ai_analysis,
    merge_suggestions,
    suggest_hospitals,
)
from swift_responder.mock_data import DEFAULT_CENTER, build_fallback_hospital
from swift_responder.models import Coordinates, Hospital, SelectionCriteria
from swift_responder.places import (
    Capacity,
    PLACE_DETAILS_URL,
    PlacesClient,
    compare_hospitals,
    infer_hospital_size,
    place_to_hospital,
    sort_hospitals,
    suitability_score,
)


def _suggestion(name: str, score: float = 9.0) -> HospitalSuggestion:
    return HospitalSuggestion(
        name=name,
        address="Somewhere",
        availableBeds=20,
        availableICUs=4,
        availableNICUs=2,
        availableOxygenCylinders=10,
        availableVentilators=6,
        availableDoctors=9,
        suitabilityScore=score,
        reason="Best cardiac unit",
    )


class FakePlaces:
    def __init__(self, hospitals: List[Hospital]) -> None:
        self.hospitals = hospitals

    def search_nearby_hospitals(self, location: Coordinates, radius: int = 10_000) -> List[Hospital]:
        return list(self.hospitals)


class FakeAI:
    def __init__(self, suggestions: List[HospitalSuggestion]) -> None:
        self.suggestions = suggestions
        self.prompts: List[str] = []

    def suggest_best_hospitals(self, needs: str, location: str) -> List[HospitalSuggestion]:
        self.prompts.append(needs)
        return list(self.suggestions)


class FakeResponse:
    def __init__(self, payload: Dict[str, Any]) -> None:
        self.payload = payload

    def raise_for_status(self) -> None:
        return None

    def json(self) -> Dict[str, Any]:
        return self.payload


class FakeSession:
    def __init__(self, payload: Dict[str, Any]) -> None:
        self.payload = payload
        self.requests: List[Dict[str, Any]] = []

    def get(self, url: str, params=None, timeout=None) -> FakeResponse:
        self.requests.append({"url": url, "params": params})
        return FakeResponse(self.payload)

    def post(self, url: str, params=None, json=None, timeout=None) -> FakeResponse:
        self.requests.append({"url": url, "params": params, "json": json})
        return FakeResponse(self.payload)


def test_chain_falls_through_to_static_record() -> None:
    places = OfflinePlaces()
    finder = build_hospital_finder(places, OfflineAI(), build_fallback_hospital())

    hospitals = finder.find(DEFAULT_CENTER, use_ai=True)

    assert [h.name for h in hospitals] == ["General Hospital"]
    assert places.calls == [10_000, 10_000, 25_000]


def test_chain_skips_ai_provider_when_disabled() -> None:
    ai = FakeAI([_suggestion("Should Not Appear")])
    places = FakePlaces([make_hospital("Quick Result")])
    finder = build_hospital_finder(places, ai, build_fallback_hospital())

    hospitals = finder.find(DEFAULT_CENTER, use_ai=False)

    assert [h.name for h in hospitals] == ["Quick Result"]
    assert ai.prompts == []


def test_empty_ai_answer_falls_back_to_quick_search() -> None:
    finder = build_hospital_finder(FakePlaces([make_hospital("Quick Result")]), FakeAI([]), build_fallback_hospital())

    assert [h.name for h in finder.find(DEFAULT_CENTER, use_ai=True)] == ["Quick Result"]


def test_first_non_empty_provider_wins() -> None:
    class EmptyProvider(PlacesHospitalProvider):
        def find(self, location, criteria):
            return []

    finder = HospitalFinder(
        [
            EmptyProvider(FakePlaces([])),
            StaticHospitalProvider(make_hospital("Second")),
            StaticHospitalProvider(make_hospital("Third")),
        ]
    )

    assert [h.name for h in finder.find(DEFAULT_CENTER)] == ["Second"]
    assert HospitalFinder([]).find(DEFAULT_CENTER) == []


def test_ai_ranking_merges_by_substring_name() -> None:
    places = FakePlaces([make_hospital("St. Mary Medical Center"), make_hospital("Harbor Clinic")])
    ai = FakeAI([_suggestion("St. Mary", 9.5), _suggestion("Unknown Memorial", 7.0)])
    provider = AIRankedHospitalProvider(places, ai)

    ranked = provider.find(DEFAULT_CENTER, SelectionCriteria(medical_needs="stroke", severity="critical"))

    assert [h.name for h in ranked] == ["St. Mary Medical Center", "Unknown Memorial"]
    assert ranked[0].available_beds == 20
    assert ranked[0].suitability_score == 9.5
    assert ranked[0].ai_reasoning == "Best cardiac unit"
    assert ranked[0].address == "1 Test Way"
    assert ranked[1].location == DEFAULT_CENTER
    assert ranked[1].wait_time == 15
    assert "Severity Level: CRITICAL" in ai.prompts[0]
    assert "St. Mary Medical Center" in ai.prompts[0]


def test_merge_matches_either_direction() -> None:
    merged = merge_suggestions([_suggestion("Cedars-Sinai Medical Center Los Angeles")], [make_hospital("Cedars-Sinai")], DEFAULT_CENTER)

    assert merged[0].name == "Cedars-Sinai"
    assert merged[0].ai_score == 9.0


def test_hospital_ai_analysis_defaults_on_failure() -> None:
    analysis = hospital_ai_analysis(OfflineAI(), make_hospital(), "chest pain", DEFAULT_CENTER)

    assert analysis.suitability_score == 7.0
    assert analysis.estimated_capacity == {"beds": 10, "icus": 3, "doctors": 5}


def test_hospital_ai_analysis_uses_first_suggestion() -> None:
    analysis = hospital_ai_analysis(FakeAI([_suggestion("Test Medical Center", 8.4)]), make_hospital(), "burns", DEFAULT_CENTER)

    assert analysis.suitability_score == 8.4
    assert analysis.estimated_capacity["doctors"] == 9


def test_suggest_hospitals_validates_short_input() -> None:
    result = suggest_hospitals(FakeAI([]), "ab", " x ")

    assert result.data is None
    assert set(result.errors) == {"needs", "location"}


def test_suggest_hospitals_reports_results_and_failures() -> None:
    found = suggest_hospitals(FakeAI([_suggestion("Good Samaritan")]), "broken leg", "Echo Park")
    empty = suggest_hospitals(FakeAI([]), "broken leg", "Echo Park")
    failed = suggest_hospitals(OfflineAI(), "broken leg", "Echo Park")

    assert found.message == "Suggestions found."
    assert found.data[0].name == "Good Samaritan"
    assert empty.data == []
    assert failed.data is None
    assert "error occurred" in failed.message


def test_gemini_client_parses_json_candidates() -> None:
    text = (
        '[{"name": "Good Samaritan", "address": "1225 Wilshire Blvd", "availableBeds": 5, "availableICUs": 2,'
        ' "availableNICUs": 1, "availableOxygenCylinders": 9, "availableVentilators": 3, "availableDoctors": 6,'
        ' "suitabilityScore": 8.7, "reason": "Trauma center"}]'
    )
    session = FakeSession({"candidates": [{"content": {"parts": [{"text": text}]}}]})
    client = GeminiClient(api_key="test-key", session=session)

    suggestions = client.suggest_best_hospitals("trauma", "Downtown")

    assert suggestions[0].available_icus == 2
    assert suggestions[0].suitability_score == 8.7
    assert "trauma" in session.requests[0]["json"]["contents"][0]["parts"][0]["text"]


def test_gemini_client_rejects_bad_payloads() -> None:
    with pytest.raises(AIServiceError):
        GeminiClient(api_key="").generate_json("hi")
    with pytest.raises(AIServiceError):
        GeminiClient(api_key="k", session=FakeSession({"candidates": []})).generate_json("hi")
    bad_schema = FakeSession({"candidates": [{"content": {"parts": [{"text": '[{"name": "x"}]'}]}}]})
    with pytest.raises(AIServiceError):
        GeminiClient(api_key="k", session=bad_schema).suggest_best_hospitals("a", "b")


def test_places_client_converts_and_sorts_results() -> None:
    payload = {
        "status": "OK",
        "results": [
            {
                "place_id": "closed",
                "name": "Night Clinic",
                "vicinity": "2 Side St",
                "geometry": {"location": {"lat": 34.053, "lng": -118.244}},
                "rating": 4.9,
                "user_ratings_total": 50,
                "opening_hours": {"open_now": False},
            },
            {
                "place_id": "open",
                "name": "Regional Medical Center",
                "vicinity": "9 Main St",
                "geometry": {"location": {"lat": 34.08, "lng": -118.26}},
                "rating": 4.2,
                "user_ratings_total": 2400,
                "opening_hours": {"open_now": True},
            },
            {"name": "No Geometry"},
        ],
    }
    client = PlacesClient(api_key="k", session=FakeSession(payload), rng=random.Random(7))

    hospitals = client.search_nearby_hospitals(DEFAULT_CENTER)

    assert [h.name for h in hospitals] == ["Regional Medical Center", "Night Clinic"]
    assert hospitals[0].is_open is True
    assert "Trauma Surgery" in hospitals[0].specialties
    assert 1.0 <= hospitals[1].suitability_score <= 10.0
    assert hospitals[1].distance_km < 1


def test_places_client_errors() -> None:
    with pytest.raises(PlacesSearchError):
        PlacesClient(api_key="").search_nearby_hospitals(DEFAULT_CENTER)
    denied = FakeSession({"status": "REQUEST_DENIED", "error_message": "bad key"})
    with pytest.raises(PlacesSearchError, match="REQUEST_DENIED"):
        PlacesClient(api_key="k", session=denied).search_nearby_hospitals(DEFAULT_CENTER)
    assert PlacesClient(api_key="k", session=FakeSession({"status": "ZERO_RESULTS"})).search_nearby_hospitals(DEFAULT_CENTER) == []


def test_hospital_size_and_score_heuristics() -> None:
    assert infer_hospital_size(4.0, 50, "Downtown General Hospital") == "large"
    assert infer_hospital_size(4.0, 500, "Eastside Urgent Care") == "small"
    assert infer_hospital_size(4.0, 500, "Mercy Hospital") == "medium"

    capacity = Capacity(beds=20, icus=8, doctors=12, nicus=2, oxygen=20, ventilators=10)
    assert suitability_score(4.8, 0.5, True, capacity) == 10.0
    assert suitability_score(0.0, 20, False, Capacity(1, 1, 0, 1, 1, 1)) == 5.5


def test_sort_prefers_open_then_score_then_distance() -> None:
    base = make_hospital()
    closed_best = Hospital(**{**base.to_dict(), "name": "Closed", "is_open": False, "suitability_score": 10.0, "location": None})
    open_close = Hospital(**{**base.to_dict(), "name": "Near", "is_open": True, "distance_km": 1.0, "suitability_score": 7.0, "location": None})
    open_far = Hospital(**{**base.to_dict(), "name": "Far", "is_open": True, "distance_km": 4.0, "suitability_score": 7.3, "location": None})
    open_top = Hospital(**{**base.to_dict(), "name": "Top", "is_open": True, "distance_km": 9.0, "suitability_score": 9.0, "location": None})

    ordered = sort_hospitals([closed_best, open_far, open_close, open_top])

    assert [h.name for h in ordered] == ["Top", "Near", "Far", "Closed"]
    assert compare_hospitals(open_close, open_close) == 0


def test_place_to_hospital_defaults() -> None:
    hospital = place_to_hospital({"name": "Tiny Clinic"}, DEFAULT_CENTER, 3, random.Random(1))

    assert hospital.hospital_id == "hospital-3"
    assert hospital.location == DEFAULT_CENTER
    assert hospital.address == "Address unavailable"
    assert hospital.specialties[0] == "Emergency Medicine"


def test_places_client_hospital_details() -> None:
    payload = {
        "status": "OK",
        "result": {
            "name": "Good Samaritan",
            "formatted_address": "1225 Wilshire Blvd",
            "formatted_phone_number": "(213) 555-0100",
            "geometry": {"location": {"lat": 34.0519, "lng": -118.2645}},
        },
    }
    session = FakeSession(payload)

    details = PlacesClient(api_key="k", session=session).get_hospital_details("place-1")

    assert details == {
        "name": "Good Samaritan",
        "address": "1225 Wilshire Blvd",
        "phone": "(213) 555-0100",
        "location": Coordinates(34.0519, -118.2645),
    }
    assert session.requests[0]["url"] == PLACE_DETAILS_URL
    assert session.requests[0]["params"]["place_id"] == "place-1"


def test_places_client_hospital_details_defaults_and_errors() -> None:
    sparse = PlacesClient(api_key="k", session=FakeSession({"status": "OK", "result": {}})).get_hospital_details("p")
    assert sparse == {"name": "Unknown Hospital", "address": "Address unavailable", "phone": None, "location": None}

    class UnreachableSession:
        def get(self, url: str, params=None, timeout=None) -> FakeResponse:
            raise requests.Timeout("timed out")

    with pytest.raises(PlacesSearchError, match="timed out"):
        PlacesClient(api_key="k", session=UnreachableSession()).get_hospital_details("p")
    with pytest.raises(PlacesSearchError, match="INVALID_REQUEST"):
        PlacesClient(api_key="k", session=FakeSession({"status": "INVALID_REQUEST"})).get_hospital_details("p")
