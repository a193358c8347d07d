from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from swift_responder.models import Coordinates

logger = logging.getLogger(__name__)

PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Location permission denied. Please enable location access.",
    POSITION_UNAVAILABLE: "Location information unavailable.",
    TIMEOUT: "Location request timed out.",
}
UNKNOWN_ERROR_MESSAGE = "Unable to get your location."


@dataclass(frozen=True)
class LocationFix:
    location: Coordinates
    accuracy_m: Optional[float] = None
    speed_mps: Optional[float] = None
    heading: Optional[float] = None
    timestamp: float = 0.0


class LiveLocationService:
    """User position source that switches between a static default and live fixes."""

    def __init__(
        self,
        default: Coordinates,
        live: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.default = default
        self.live = live
        self.clock = clock
        self.last_fix: Optional[LocationFix] = None
        self.last_error: Optional[str] = None

    @property
    def current(self) -> Coordinates:
        if self.live and self.last_fix is not None:
            return self.last_fix.location
        return self.default

    def set_live(self, live: bool) -> None:
        self.live = live
        logger.info("Location mode set to %s", "live" if live else "static")

    def update(
        self,
        latitude: float,
        longitude: float,
        accuracy_m: Optional[float] = None,
        speed_mps: Optional[float] = None,
        heading: Optional[float] = None,
    ) -> LocationFix:
        self.last_fix = LocationFix(
            location=Coordinates(latitude, longitude),
            accuracy_m=accuracy_m,
            speed_mps=speed_mps,
            heading=heading,
            timestamp=self.clock(),
        )
        self.last_error = None
        return self.last_fix

    def report_error(self, code: int) -> str:
        message = ERROR_MESSAGES.get(code, UNKNOWN_ERROR_MESSAGE)
        self.last_error = message
        logger.warning("Geolocation error %s: %s", code, message)
        return message

    def to_dict(self) -> dict:
        return {
            "mode": "live" if self.live else "static",
            "current": {"latitude": self.current.latitude, "longitude": self.current.longitude},
            "accuracy_m": self.last_fix.accuracy_m if self.last_fix else None,
            "last_update": self.last_fix.timestamp if self.last_fix else None,
            "error": self.last_error,
        }
