from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from swift_responder.config import GOOGLE_MAPS_API_KEY, HTTP_TIMEOUT_SECONDS
from swift_responder.errors import DirectionsError
from swift_responder.geo import haversine_km
from swift_responder.models import Coordinates, RouteInfo, RouteStep

logger = logging.getLogger(__name__)

DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"
AVERAGE_SPEED_KMH = 48.0


def decode_polyline(encoded: str) -> List[Coordinates]:
    """Decode a Google encoded polyline into coordinates (precision 1e-5)."""
    points = []
    index = lat = lng = 0
    length = len(encoded)

    while index < length:
        deltas = []
        for _ in range(2):
            shift = result = 0
            while True:
                byte = ord(encoded[index]) - 63
                index += 1
                result |= (byte & 0x1F) << shift
                shift += 5
                if byte < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)
        lat += deltas[0]
        lng += deltas[1]
        points.append(Coordinates(lat / 1e5, lng / 1e5))

    return points


def straight_line_route(origin: Coordinates, destination: Coordinates, speed_kmh: float = AVERAGE_SPEED_KMH) -> RouteInfo:
    distance = haversine_km(origin, destination)
    return RouteInfo(
        path=(origin, destination),
        distance_km=distance,
        duration_min=distance / speed_kmh * 60,
        source="straight-line",
    )


def _point(data: Dict[str, Any]) -> Coordinates:
    return Coordinates(float(data["lat"]), float(data["lng"]))


def parse_route(route: Dict[str, Any]) -> RouteInfo:
    leg = route["legs"][0]
    path: List[Coordinates] = []
    steps = []
    for step in leg.get("steps", []):
        encoded = (step.get("polyline") or {}).get("points")
        if encoded:
            path.extend(decode_polyline(encoded))
        steps.append(
            RouteStep(
                instruction=step.get("html_instructions", ""),
                distance_m=(step.get("distance") or {}).get("value", 0),
                duration_s=(step.get("duration") or {}).get("value", 0),
                start_location=_point(step["start_location"]),
                end_location=_point(step["end_location"]),
            )
        )

    if not path:
        path = [_point(leg["start_location"]), _point(leg["end_location"])]

    in_traffic = leg.get("duration_in_traffic")
    return RouteInfo(
        path=tuple(path),
        distance_km=(leg.get("distance") or {}).get("value", 0) / 1000,
        duration_min=(leg.get("duration") or {}).get("value", 0) / 60,
        duration_in_traffic_min=in_traffic["value"] / 60 if in_traffic else None,
        polyline=(route.get("overview_polyline") or {}).get("points", ""),
        steps=tuple(steps),
    )


@dataclass(frozen=True)
class TrafficEta:
    eta_min: float
    eta_with_traffic_min: float
    distance_km: float
    traffic_delay_min: float


class DirectionsClient:
    def __init__(
        self,
        api_key: str = GOOGLE_MAPS_API_KEY,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, origin: Coordinates, destination: Coordinates, alternatives: bool) -> List[Dict[str, Any]]:
        if not self.api_key:
            raise DirectionsError("Google Maps API key is not configured")
        params = {
            "origin": f"{origin.latitude},{origin.longitude}",
            "destination": f"{destination.latitude},{destination.longitude}",
            "mode": "driving",
            "departure_time": str(int(time.time())),
            "traffic_model": "best_guess",
            "alternatives": "true" if alternatives else "false",
            "key": self.api_key,
        }
        try:
            response = self.session.get(DIRECTIONS_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise DirectionsError(f"Directions request failed: {exc}") from exc

        if data.get("status") != "OK" or not data.get("routes"):
            raise DirectionsError(f"Directions request failed: {data.get('status')}")
        return data["routes"]

    def get_route(self, origin: Coordinates, destination: Coordinates) -> RouteInfo:
        try:
            return parse_route(self._request(origin, destination, alternatives=False)[0])
        except (KeyError, IndexError, TypeError) as exc:
            raise DirectionsError(f"Malformed directions response: {exc}") from exc

    def get_route_alternatives(self, origin: Coordinates, destination: Coordinates, max_alternatives: int = 3) -> List[RouteInfo]:
        routes = self._request(origin, destination, alternatives=True)
        try:
            return [parse_route(route) for route in routes[:max_alternatives]]
        except (KeyError, IndexError, TypeError) as exc:
            raise DirectionsError(f"Malformed directions response: {exc}") from exc

    def get_eta_with_traffic(self, origin: Coordinates, destination: Coordinates) -> TrafficEta:
        route = self.get_route(origin, destination)
        with_traffic = route.effective_duration_min
        return TrafficEta(
            eta_min=route.duration_min,
            eta_with_traffic_min=with_traffic,
            distance_km=route.distance_km,
            traffic_delay_min=with_traffic - route.duration_min,
        )


class RouteProvider:
    """Directions lookup with a straight-line fallback."""

    def __init__(self, directions: DirectionsClient, speed_kmh: float = AVERAGE_SPEED_KMH) -> None:
        self.directions = directions
        self.speed_kmh = speed_kmh

    def get_route(self, origin: Coordinates, destination: Coordinates) -> RouteInfo:
        try:
            return self.directions.get_route(origin, destination)
        except DirectionsError as exc:
            logger.warning("Directions unavailable, using straight-line estimate: %s", exc)
            return straight_line_route(origin, destination, self.speed_kmh)

    def get_live_route(self, origin: Coordinates, destination: Coordinates) -> RouteInfo:
        return self.directions.get_route(origin, destination)
