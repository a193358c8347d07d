from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from swift_responder.config import HTTP_TIMEOUT_SECONDS, OPENWEATHER_API_KEY
from swift_responder.errors import WeatherServiceError
from swift_responder.models import Coordinates
from swift_responder.route_optimizer import WeatherConditions

logger = logging.getLogger(__name__)

CURRENT_WEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"
ONE_CALL_URL = "https://api.openweathermap.org/data/3.0/onecall"
ICON_URL = "https://openweathermap.org/img/wn/{code}@{size}.png"

HAZARDOUS_CONDITIONS = ("thunderstorm", "snow", "heavy rain", "fog", "tornado", "hurricane")


@dataclass(frozen=True)
class WeatherAlert:
    event: str
    severity: str
    description: str
    start: int
    end: int


@dataclass(frozen=True)
class WeatherData:
    temperature: int
    condition: str
    description: str
    humidity: int
    wind_speed_kmh: int
    visibility_m: int
    icon: str
    is_hazardous: bool

    def as_conditions(self) -> WeatherConditions:
        return WeatherConditions(
            condition=self.condition,
            visibility_km=self.visibility_m / 1000,
            temperature=self.temperature,
        )


@dataclass(frozen=True)
class WeatherImpact:
    can_dispatch: bool
    warning: Optional[str] = None
    estimated_delay_min: Optional[int] = None


def map_alert_severity(tag: Optional[str]) -> str:
    if not tag:
        return "moderate"
    tag = tag.lower()
    for level in ("extreme", "severe", "moderate"):
        if level in tag:
            return level
    return "minor"


def weather_icon_url(code: str, size: str = "2x") -> str:
    return ICON_URL.format(code=code, size=size)


def parse_current_weather(data: Dict[str, Any]) -> WeatherData:
    summary = data["weather"][0]
    wind_kmh = data["wind"]["speed"] * 3.6
    visibility = data.get("visibility", 10_000)
    is_hazardous = (
        any(condition in summary["description"].lower() for condition in HAZARDOUS_CONDITIONS)
        or wind_kmh > 50
        or visibility < 1000
    )
    return WeatherData(
        temperature=round(data["main"]["temp"]),
        condition=summary["main"],
        description=summary["description"],
        humidity=data["main"]["humidity"],
        wind_speed_kmh=round(wind_kmh),
        visibility_m=visibility,
        icon=summary["icon"],
        is_hazardous=is_hazardous,
    )


def analyze_weather_impact(weather: WeatherData) -> WeatherImpact:
    if weather.visibility_m < 500:
        return WeatherImpact(
            can_dispatch=False,
            warning="Extremely poor visibility. Dispatch may be delayed until conditions improve.",
            estimated_delay_min=15,
        )
    if not weather.is_hazardous:
        return WeatherImpact(can_dispatch=True)

    condition = weather.condition.lower()
    if "thunderstorm" in condition:
        warning, delay = "Thunderstorm in area. Ambulance may take longer route for safety.", 10
    elif "snow" in condition:
        warning, delay = "Snow conditions. Response time may be increased.", 15
    elif weather.visibility_m < 1000:
        warning, delay = "Poor visibility. Driver will proceed with caution.", 5
    elif weather.wind_speed_kmh > 50:
        warning, delay = "Strong winds. Ambulance will take extra precautions.", 5
    else:
        warning, delay = "Hazardous weather conditions detected. ETA may be affected.", 8
    return WeatherImpact(can_dispatch=True, warning=warning, estimated_delay_min=delay)


class WeatherClient:
    def __init__(
        self,
        api_key: str = OPENWEATHER_API_KEY,
        session: Optional[requests.Session] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params={**params, "appid": self.api_key}, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise WeatherServiceError(f"Weather request failed: {exc}") from exc

    def current_weather(self, location: Coordinates) -> Optional[WeatherData]:
        if not self.api_key:
            logger.warning("OpenWeather API key not found. Weather features disabled.")
            return None
        try:
            data = self._get(
                CURRENT_WEATHER_URL,
                {"lat": location.latitude, "lon": location.longitude, "units": "metric"},
            )
            return parse_current_weather(data)
        except (WeatherServiceError, KeyError, IndexError, TypeError) as exc:
            logger.error("Error fetching weather data: %s", exc)
            return None

    def weather_alerts(self, location: Coordinates) -> List[WeatherAlert]:
        if not self.api_key:
            return []
        try:
            data = self._get(
                ONE_CALL_URL,
                {"lat": location.latitude, "lon": location.longitude, "exclude": "minutely,hourly,daily"},
            )
            return [
                WeatherAlert(
                    event=alert["event"],
                    severity=map_alert_severity((alert.get("tags") or [None])[0]),
                    description=alert.get("description", ""),
                    start=alert["start"] * 1000,
                    end=alert["end"] * 1000,
                )
                for alert in data.get("alerts") or []
            ]
        except (WeatherServiceError, KeyError, TypeError) as exc:
            logger.error("Error fetching weather alerts: %s", exc)
            return []
