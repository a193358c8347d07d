"""Dispatch tracking simulation.

The tracker owns one dispatch at a time and moves through
IDLE -> DISPATCHING -> DISPATCHED -> ARRIVED, with ``reset()`` returning any
non-idle state to IDLE. Blocking service clients run in worker threads; every
piece of asynchronous work carries the dispatch generation it started under and
is dropped if a reset has happened since.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from swift_responder.config import TrackerConfig
from swift_responder.errors import DirectionsError, DispatchInProgressError, InvalidTransitionError, StorageError
from swift_responder.geo import haversine_km, interpolate
from swift_responder.gemini import GeminiClient
from swift_responder.history import build_history_record
from swift_responder.hospitals import HospitalFinder, build_hospital_finder
from swift_responder.location import LiveLocationService
from swift_responder.mock_data import DEFAULT_CENTER, build_fallback_hospital, build_initial_ambulances
from swift_responder.models import (
    Ambulance,
    AmbulanceStatus,
    Coordinates,
    DispatchHistory,
    DispatchOutcome,
    Hospital,
    Route,
    RouteInfo,
    SelectionCriteria,
)
from swift_responder.places import PlacesClient
from swift_responder.route_optimizer import (
    EtaPrediction,
    RouteConditions,
    WeatherConditions,
    predict_ai_enhanced_eta,
    time_of_day_band,
    traffic_level,
)
from swift_responder.routing import DirectionsClient, RouteProvider
from swift_responder.scheduler import PeriodicTask
from swift_responder.selection import DEFAULT_WEIGHTS, ScoringWeights, find_nearest_ambulance, select_optimal_ambulance
from swift_responder.storage import DispatchStore, SQLiteDispatchStore
from swift_responder.weather import WeatherClient

logger = logging.getLogger(__name__)


class TrackerStatus(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    DISPATCHED = "dispatched"
    ARRIVED = "arrived"


ALLOWED_TRANSITIONS = {
    TrackerStatus.IDLE: {TrackerStatus.DISPATCHING},
    TrackerStatus.DISPATCHING: {TrackerStatus.DISPATCHED, TrackerStatus.IDLE},
    TrackerStatus.DISPATCHED: {TrackerStatus.ARRIVED, TrackerStatus.IDLE},
    TrackerStatus.ARRIVED: {TrackerStatus.IDLE},
}


def _point(location: Coordinates) -> Dict[str, float]:
    return {"latitude": location.latitude, "longitude": location.longitude}


class AmbulanceTracker:
    def __init__(
        self,
        config: TrackerConfig,
        location: LiveLocationService,
        hospital_finder: HospitalFinder,
        route_provider: RouteProvider,
        store: DispatchStore,
        ambulances: Optional[List[Ambulance]] = None,
        fallback_hospital: Optional[Hospital] = None,
        weather: Optional[WeatherClient] = None,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.location = location
        self.hospital_finder = hospital_finder
        self.route_provider = route_provider
        self.store = store
        self.weather = weather
        self.weights = weights
        self.clock = clock
        self.fallback_hospital = fallback_hospital or build_fallback_hospital(location.current)
        self.initial_ambulances = list(ambulances if ambulances is not None else build_initial_ambulances(location.current))

        self.status = TrackerStatus.IDLE
        self.ambulances = list(self.initial_ambulances)
        self.dispatched: Optional[Ambulance] = None
        self.destination: Optional[Hospital] = None
        self.route: Optional[Route] = None
        self.eta: Optional[int] = None
        self.distance: Optional[float] = None
        self.traffic_eta: Optional[float] = None
        self.eta_prediction: Optional[EtaPrediction] = None
        self.dispatch_started_at: Optional[float] = None
        self.tick_count = 0
        self.generation = 0

        self._dispatch_task: Optional[asyncio.Task] = None
        self._movement = PeriodicTask(config.tick_interval_s, self.tick, name="ambulance-movement")

    @property
    def destination_point(self) -> Optional[Coordinates]:
        if self.destination is None:
            return None
        return self.destination.location or self.fallback_hospital.location

    def _transition(self, new_status: TrackerStatus) -> None:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status.value, new_status.value)
        logger.info("Tracker %s -> %s", self.status.value, new_status.value)
        self.status = new_status

    def _is_current(self, generation: int, status: TrackerStatus) -> bool:
        return generation == self.generation and self.status is status

    def request_dispatch(
        self,
        criteria: Optional[SelectionCriteria] = None,
        use_ai: Optional[bool] = None,
    ) -> asyncio.Task:
        """Start a dispatch and return the task that completes it."""
        if self.status is not TrackerStatus.IDLE:
            raise DispatchInProgressError(self.status.value)

        self._transition(TrackerStatus.DISPATCHING)
        self.generation += 1
        use_ai = self.config.ai_hospital_search if use_ai is None else use_ai
        self._dispatch_task = asyncio.get_running_loop().create_task(
            self._complete_dispatch(self.generation, criteria or SelectionCriteria(), use_ai),
            name=f"dispatch-{self.generation}",
        )
        return self._dispatch_task

    async def dispatch(
        self,
        criteria: Optional[SelectionCriteria] = None,
        use_ai: Optional[bool] = None,
    ) -> TrackerStatus:
        task = self.request_dispatch(criteria, use_ai)
        await asyncio.wait({task})
        if not task.cancelled():
            task.result()
        return self.status

    async def _complete_dispatch(self, generation: int, criteria: SelectionCriteria, use_ai: bool) -> None:
        try:
            await self._resolve_dispatch(generation, criteria, use_ai)
        except Exception:
            logger.exception("Dispatch %d failed", generation)
            if self._is_current(generation, TrackerStatus.DISPATCHING):
                self._transition(TrackerStatus.IDLE)

    async def _resolve_dispatch(self, generation: int, criteria: SelectionCriteria, use_ai: bool) -> None:
        if self.config.dispatch_delay_s > 0:
            await asyncio.sleep(self.config.dispatch_delay_s)
        if not self._is_current(generation, TrackerStatus.DISPATCHING):
            return

        user_location = self.location.current
        exclude_id = self.dispatched.ambulance_id if self.dispatched else None
        ranked = select_optimal_ambulance(self.ambulances, user_location, criteria, exclude_id, self.weights)
        if ranked:
            ambulance = ranked[0].ambulance
            logger.info("Selected %s (score %d): %s", ambulance.ambulance_id, ranked[0].score, ranked[0].match_reason)
        else:
            ambulance = find_nearest_ambulance(self.ambulances, user_location, exclude_id)
        if ambulance is None:
            logger.error("No ambulance available for dispatch")
            self._transition(TrackerStatus.IDLE)
            return

        hospitals = await asyncio.to_thread(self.hospital_finder.find, user_location, criteria, use_ai)
        if not self._is_current(generation, TrackerStatus.DISPATCHING):
            return
        hospital = hospitals[0] if hospitals else self.fallback_hospital
        destination = hospital.location or self.fallback_hospital.location

        route = await asyncio.to_thread(self.route_provider.get_route, ambulance.location, destination)
        if not self._is_current(generation, TrackerStatus.DISPATCHING):
            return

        eta = round(route.effective_duration_min)
        if self.config.ai_enhanced_eta:
            eta = await self._enhanced_eta(route, ambulance.location)
            if not self._is_current(generation, TrackerStatus.DISPATCHING):
                return

        self.dispatched = replace(ambulance, status=AmbulanceStatus.DISPATCHED)
        self.ambulances = [
            self.dispatched if a.ambulance_id == ambulance.ambulance_id else a for a in self.ambulances
        ]
        self.destination = hospital
        self.route = route.path
        self.eta = eta
        self.distance = route.distance_km
        self.traffic_eta = route.duration_in_traffic_min
        self.dispatch_started_at = self.clock()
        self.tick_count = 0
        self._transition(TrackerStatus.DISPATCHED)
        logger.info(
            "Dispatched %s to %s (%.2f km, ETA %d min, %s route)",
            ambulance.ambulance_id,
            hospital.name,
            route.distance_km,
            eta,
            route.source,
        )

        if self.config.auto_tick:
            self._movement.start()

    async def _enhanced_eta(self, route: RouteInfo, origin: Coordinates) -> int:
        weather = None
        if self.weather is not None:
            weather = await asyncio.to_thread(self.weather.current_weather, origin)
        conditions = RouteConditions(
            traffic_level=traffic_level(route.duration_min, route.duration_in_traffic_min),
            weather=weather.as_conditions() if weather else WeatherConditions(),
            time_of_day=time_of_day_band(datetime.fromtimestamp(self.clock()).hour),
        )
        prediction = predict_ai_enhanced_eta(route.duration_min, conditions)
        logger.info(
            "AI-enhanced ETA %d min (confidence %d%%): %s",
            prediction.predicted_eta,
            prediction.confidence,
            ", ".join(prediction.adjustment_factors) or "no adjustments",
        )
        self.eta_prediction = prediction
        return prediction.predicted_eta

    async def tick(self) -> None:
        """Advance the dispatched ambulance one step toward its destination."""
        if self.status is not TrackerStatus.DISPATCHED or self.dispatched is None:
            return
        destination = self.destination_point
        position = self.dispatched.location
        distance = haversine_km(position, destination)

        if distance < self.config.arrival_threshold_km:
            self._arrive()
            return

        self.tick_count += 1
        fraction = min(1.0, self.config.step_km / distance)
        position = interpolate(position, destination, fraction)
        self._move_dispatched(position)

        remaining = haversine_km(position, destination)
        self.distance = remaining
        self.eta = round(remaining / self.config.average_speed_km_per_min)
        self.route = (position, destination)

        if self.tick_count % self.config.route_refresh_ticks == 0:
            await self._refresh_live_route(self.generation, position, destination)

    def _move_dispatched(self, position: Coordinates) -> None:
        self.dispatched = replace(self.dispatched, location=position, status=AmbulanceStatus.EN_ROUTE)
        self.ambulances = [
            self.dispatched if a.ambulance_id == self.dispatched.ambulance_id else a for a in self.ambulances
        ]

    async def _refresh_live_route(self, generation: int, position: Coordinates, destination: Coordinates) -> None:
        try:
            route = await asyncio.to_thread(self.route_provider.get_live_route, position, destination)
        except DirectionsError as exc:
            logger.warning("Live route refresh failed, keeping straight path: %s", exc)
            return
        if not self._is_current(generation, TrackerStatus.DISPATCHED):
            logger.info("Discarding live route that landed after the dispatch ended")
            return
        self.route = route.path
        self.traffic_eta = route.effective_duration_min
        self.eta = round(route.effective_duration_min)

    def _arrive(self) -> None:
        self._movement.cancel()
        self._transition(TrackerStatus.ARRIVED)
        self.dispatched = replace(self.dispatched, location=self.destination_point, status=AmbulanceStatus.AT_HOSPITAL)
        self.ambulances = [
            self.dispatched if a.ambulance_id == self.dispatched.ambulance_id else a for a in self.ambulances
        ]
        self.route = None
        self.distance = 0.0
        self.eta = 0
        logger.info("%s arrived at %s", self.dispatched.ambulance_id, self.destination.name)

    def reset(self, notes: Optional[str] = None) -> Optional[DispatchHistory]:
        """Cancel the current dispatch and record it in the history when it had started."""
        if TrackerStatus.IDLE not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status.value, TrackerStatus.IDLE.value)

        self.generation += 1
        self._cancel_tasks()

        record = None
        if self.dispatch_started_at is not None and self.dispatched is not None and self.destination is not None:
            outcome = DispatchOutcome.COMPLETED if self.status is TrackerStatus.ARRIVED else DispatchOutcome.CANCELLED
            record = build_history_record(
                self.dispatched, self.destination, self.dispatch_started_at, self.clock(), outcome, notes
            )
            try:
                self.store.save_history(record)
            except StorageError:
                logger.exception("Failed to save dispatch history %s", record.history_id)

        self._transition(TrackerStatus.IDLE)
        self.ambulances = list(self.initial_ambulances)
        self.dispatched = None
        self.destination = None
        self.route = None
        self.eta = None
        self.distance = None
        self.traffic_eta = None
        self.eta_prediction = None
        self.dispatch_started_at = None
        self.tick_count = 0
        return record

    def _cancel_tasks(self) -> None:
        task, self._dispatch_task = self._dispatch_task, None
        if task is not None and not task.done():
            task.cancel()
        self._movement.cancel()

    def close(self) -> None:
        self.generation += 1
        self._cancel_tasks()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "user_location": _point(self.location.current),
            "ambulances": [a.to_dict() for a in self.ambulances],
            "dispatched_ambulance": self.dispatched.to_dict() if self.dispatched else None,
            "destination": self.destination.to_dict() if self.destination else None,
            "route": [_point(p) for p in self.route] if self.route is not None else None,
            "eta": self.eta,
            "distance": round(self.distance, 3) if self.distance is not None else None,
            "traffic_eta": self.traffic_eta,
            "eta_prediction": (
                {
                    "predicted_eta": self.eta_prediction.predicted_eta,
                    "confidence": self.eta_prediction.confidence,
                    "adjustment_factors": self.eta_prediction.adjustment_factors,
                }
                if self.eta_prediction
                else None
            ),
            "dispatch_started_at": self.dispatch_started_at,
            "tick_count": self.tick_count,
        }


def build_default_tracker(
    config: Optional[TrackerConfig] = None,
    store: Optional[DispatchStore] = None,
    location: Optional[LiveLocationService] = None,
) -> AmbulanceTracker:
    config = config or TrackerConfig.from_env()
    location = location or LiveLocationService(DEFAULT_CENTER)
    fallback = build_fallback_hospital(location.current)
    finder = build_hospital_finder(
        PlacesClient(),
        GeminiClient(),
        fallback,
        radius=config.search_radius_m,
        wide_radius=config.wide_search_radius_m,
    )
    return AmbulanceTracker(
        config=config,
        location=location,
        hospital_finder=finder,
        route_provider=RouteProvider(DirectionsClient(), config.average_speed_kmh),
        store=store or SQLiteDispatchStore(),
        fallback_hospital=fallback,
        weather=WeatherClient(),
    )
