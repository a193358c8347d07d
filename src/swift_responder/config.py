from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[2]
DB_PATH = Path(os.getenv("SWIFT_RESPONDER_DB", str(BASE_DIR / "data" / "swift_responder.db")))
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
OPENWEATHER_API_KEY = os.getenv("OPENWEATHER_API_KEY", "")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
DISPATCH_DELAY_SECONDS = float(os.getenv("DISPATCH_DELAY_SECONDS", "2.5"))
AI_HOSPITAL_SEARCH = os.getenv("AI_HOSPITAL_SEARCH", "0") == "1"
AI_ENHANCED_ETA = os.getenv("AI_ENHANCED_ETA", "0") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class TrackerConfig:
    """Simulation constants handed to the tracker."""

    average_speed_km_per_min: float = 0.8  # ~48 km/h
    arrival_threshold_km: float = 0.1
    tick_interval_s: float = 1.0
    route_refresh_ticks: int = 30
    dispatch_delay_s: float = DISPATCH_DELAY_SECONDS
    search_radius_m: int = 10_000
    wide_search_radius_m: int = 25_000
    auto_tick: bool = True
    ai_hospital_search: bool = AI_HOSPITAL_SEARCH
    ai_enhanced_eta: bool = AI_ENHANCED_ETA

    @property
    def average_speed_kmh(self) -> float:
        return self.average_speed_km_per_min * 60

    @property
    def step_km(self) -> float:
        return self.average_speed_km_per_min * self.tick_interval_s / 60

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        return cls(
            dispatch_delay_s=float(os.getenv("DISPATCH_DELAY_SECONDS", str(DISPATCH_DELAY_SECONDS))),
            tick_interval_s=float(os.getenv("TICK_INTERVAL_SECONDS", "1")),
            route_refresh_ticks=int(os.getenv("ROUTE_REFRESH_TICKS", "30")),
            ai_hospital_search=os.getenv("AI_HOSPITAL_SEARCH", "0") == "1",
            ai_enhanced_eta=os.getenv("AI_ENHANCED_ETA", "0") == "1",
        )


def configure_logging(level: str | int = LOG_LEVEL) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
