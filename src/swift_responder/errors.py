from __future__ import annotations


class SwiftResponderError(Exception):
    """Base class for every error raised by the package."""


class TrackerError(SwiftResponderError):
    pass


class InvalidTransitionError(TrackerError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot move tracker from {current} to {requested}")
        self.current = current
        self.requested = requested


class DispatchInProgressError(TrackerError):
    def __init__(self, current: str) -> None:
        super().__init__(f"Dispatch rejected: tracker is {current}, expected IDLE")
        self.current = current


class ExternalServiceError(SwiftResponderError):
    service = "external"


class PlacesSearchError(ExternalServiceError):
    service = "places"


class DirectionsError(ExternalServiceError):
    service = "directions"


class AIServiceError(ExternalServiceError):
    service = "ai"


class WeatherServiceError(ExternalServiceError):
    service = "weather"


class StorageError(SwiftResponderError):
    pass
