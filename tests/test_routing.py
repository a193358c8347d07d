from typing import Any, Dict, List

import pytest
import requests

from conftest import OfflineDirections
from swift_responder.errors import AIServiceError, DirectionsError
from swift_responder.gemini import HospitalSuggestion
from swift_responder.models import Coordinates
from swift_responder.route_optimizer import (
    HistoricalPattern,
    RouteConditions,
    RouteOption,
    WeatherConditions,
    ai_route_optimization,
    predict_ai_enhanced_eta,
    route_adjustment_advice,
    time_of_day_band,
    traffic_level,
)
from swift_responder.routing import DirectionsClient, RouteProvider, decode_polyline, straight_line_route

ORIGIN = Coordinates(34.06, -118.25)
DESTINATION = Coordinates(34.07, -118.24)


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
        self.params: List[Dict[str, Any]] = []

    def get(self, url: str, params=None, timeout=None) -> FakeResponse:
        self.params.append(params)
        return FakeResponse(self.payload)


def _directions_payload() -> Dict[str, Any]:
    return {
        "status": "OK",
        "routes": [
            {
                "overview_polyline": {"points": "_p~iF~ps|U_ulLnnqC_mqNvxq`@"},
                "legs": [
                    {
                        "distance": {"value": 2300},
                        "duration": {"value": 360},
                        "duration_in_traffic": {"value": 540},
                        "start_location": {"lat": 34.06, "lng": -118.25},
                        "end_location": {"lat": 34.07, "lng": -118.24},
                        "steps": [
                            {
                                "html_instructions": "Head north",
                                "distance": {"value": 2300},
                                "duration": {"value": 360},
                                "start_location": {"lat": 34.06, "lng": -118.25},
                                "end_location": {"lat": 34.07, "lng": -118.24},
                                "polyline": {"points": "_p~iF~ps|U_ulLnnqC"},
                            }
                        ],
                    }
                ],
            }
        ],
    }


def test_decode_polyline_known_string() -> None:
    points = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")

    assert [(p.latitude, p.longitude) for p in points] == [
        pytest.approx((38.5, -120.2)),
        pytest.approx((40.7, -120.95)),
        pytest.approx((43.252, -126.453)),
    ]
    assert decode_polyline("") == []


def test_straight_line_route_uses_average_speed() -> None:
    route = straight_line_route(ORIGIN, DESTINATION)

    assert route.path == (ORIGIN, DESTINATION)
    assert route.source == "straight-line"
    assert route.duration_min == pytest.approx(route.distance_km / 48 * 60)


def test_directions_client_parses_route_with_traffic() -> None:
    session = FakeSession(_directions_payload())
    client = DirectionsClient(api_key="k", session=session)

    route = client.get_route(ORIGIN, DESTINATION)

    assert len(route.path) == 2
    assert route.path[0].latitude == pytest.approx(38.5)
    assert route.distance_km == 2.3
    assert route.duration_min == 6
    assert route.effective_duration_min == 9
    assert route.steps[0].instruction == "Head north"
    assert session.params[0]["traffic_model"] == "best_guess"
    assert session.params[0]["mode"] == "driving"

    eta = client.get_eta_with_traffic(ORIGIN, DESTINATION)
    assert eta.traffic_delay_min == 3


def test_directions_client_raises_domain_errors() -> None:
    with pytest.raises(DirectionsError):
        DirectionsClient(api_key="").get_route(ORIGIN, DESTINATION)
    with pytest.raises(DirectionsError, match="NOT_FOUND"):
        DirectionsClient(api_key="k", session=FakeSession({"status": "NOT_FOUND"})).get_route(ORIGIN, DESTINATION)
    broken = FakeSession({"status": "OK", "routes": [{"legs": []}]})
    with pytest.raises(DirectionsError):
        DirectionsClient(api_key="k", session=broken).get_route(ORIGIN, DESTINATION)


def test_route_provider_falls_back_to_straight_line() -> None:
    provider = RouteProvider(OfflineDirections())

    route = provider.get_route(ORIGIN, DESTINATION)

    assert route.source == "straight-line"
    assert len(route.path) == 2
    with pytest.raises(DirectionsError):
        provider.get_live_route(ORIGIN, DESTINATION)


def test_time_of_day_and_traffic_bands() -> None:
    assert [time_of_day_band(h) for h in (8, 12, 17, 23)] == ["morning-rush", "midday", "evening-rush", "night"]
    assert traffic_level(10, None) == "light"
    assert traffic_level(10, 12) == "moderate"
    assert traffic_level(10, 15) == "heavy"
    assert traffic_level(10, 25) == "severe"


def test_ai_eta_multipliers_and_confidence_floor() -> None:
    calm = predict_ai_enhanced_eta(10, RouteConditions(), HistoricalPattern(average_delay_minutes=0, success_rate=0.9))
    assert calm.predicted_eta == 10
    assert calm.confidence == 85
    assert calm.adjustment_factors == []

    worst = predict_ai_enhanced_eta(
        10,
        RouteConditions(
            traffic_level="severe",
            weather=WeatherConditions(condition="Fog", visibility_km=0.5),
            time_of_day="evening-rush",
        ),
        HistoricalPattern(average_delay_minutes=2, success_rate=0.5),
    )
    assert worst.predicted_eta == round(10 * 2.0 * 1.3 * 1.15 + 2)
    assert worst.confidence == 60
    assert len(worst.adjustment_factors) == 4

    no_history = predict_ai_enhanced_eta(10, RouteConditions(traffic_level="severe", weather=WeatherConditions(visibility_km=1)))
    assert no_history.confidence == 55


def test_route_optimization_falls_back_to_fastest_option() -> None:
    class OfflineAI:
        def suggest_best_hospitals(self, needs, location):
            raise AIServiceError("offline")

    options = [RouteOption("Slow General", 8, 20, 7), RouteOption("Quick Clinic", 3, 9, 6)]

    result = ai_route_optimization(OfflineAI(), options, RouteConditions(), "critical")

    assert result.recommended_hospital == "Quick Clinic"
    assert result.alternative_hospital == "Quick Clinic"
    assert result.confidence_score == 60


def test_route_optimization_uses_ai_ranking() -> None:
    class RankingAI:
        def suggest_best_hospitals(self, needs, location):
            suggestion = dict(address="x", availableBeds=1, availableICUs=1, availableNICUs=0,
                              availableOxygenCylinders=1, availableVentilators=1, availableDoctors=1, reason="Stroke unit")
            return [
                HospitalSuggestion(name="Slow General", suitabilityScore=8.5, **suggestion),
                HospitalSuggestion(name="Quick Clinic", suitabilityScore=6.0, **suggestion),
            ]

    options = [RouteOption("Slow General", 8, 20, 7), RouteOption("Quick Clinic", 3, 9, 6)]
    conditions = RouteConditions(traffic_level="heavy", time_of_day="morning-rush")

    result = ai_route_optimization(RankingAI(), options, conditions, "moderate")

    assert result.recommended_hospital == "Slow General"
    assert result.alternative_hospital == "Quick Clinic"
    assert result.estimated_arrival == 20
    assert result.confidence_score == 85
    assert "Rush hour - expect congestion" in result.risk_factors


def test_route_adjustment_advice() -> None:
    severe = RouteConditions(traffic_level="severe")
    foggy = RouteConditions(weather=WeatherConditions(visibility_km=0.5))

    assert route_adjustment_advice(10, 12, severe).should_reroute
    assert route_adjustment_advice(20, 40, foggy).reason == "Dangerous visibility conditions"
    assert route_adjustment_advice(25, 10, RouteConditions()).reason == "Unusually slow progress"
    assert not route_adjustment_advice(5, 40, RouteConditions()).should_reroute


class UnreachableSession:
    def get(self, url: str, params=None, timeout=None) -> FakeResponse:
        raise requests.ConnectionError("connection refused")


def test_route_alternatives_are_parsed_and_capped() -> None:
    payload = _directions_payload()
    payload["routes"] = payload["routes"] * 4
    session = FakeSession(payload)
    client = DirectionsClient(api_key="k", session=session)

    routes = client.get_route_alternatives(ORIGIN, DESTINATION)

    assert len(routes) == 3
    assert all(route.distance_km == 2.3 for route in routes)
    assert routes[0].effective_duration_min == 9
    assert session.params[0]["alternatives"] == "true"
    assert len(client.get_route_alternatives(ORIGIN, DESTINATION, max_alternatives=1)) == 1


def test_route_alternatives_raise_directions_errors() -> None:
    with pytest.raises(DirectionsError, match="connection refused"):
        DirectionsClient(api_key="k", session=UnreachableSession()).get_route_alternatives(ORIGIN, DESTINATION)
    with pytest.raises(DirectionsError, match="ZERO_RESULTS"):
        DirectionsClient(api_key="k", session=FakeSession({"status": "ZERO_RESULTS"})).get_route_alternatives(
            ORIGIN, DESTINATION
        )
    broken = FakeSession({"status": "OK", "routes": [{"legs": []}]})
    with pytest.raises(DirectionsError, match="Malformed"):
        DirectionsClient(api_key="k", session=broken).get_route_alternatives(ORIGIN, DESTINATION)
