from __future__ import annotations

import io
import logging
import time
from dataclasses import asdict
from typing import Optional
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from swift_responder.config import configure_logging
from swift_responder.errors import StorageError, TrackerError
from swift_responder.gemini import GeminiClient
from swift_responder.history import dispatch_statistics, history_pdf
from swift_responder.hospitals import suggest_hospitals
from swift_responder.models import Coordinates
from swift_responder.schemas import (
    DispatchPayload,
    EmergencyRequestCreate,
    HospitalSuggestRequest,
    LocationError,
    LocationMode,
    LocationUpdate,
    PreferenceValue,
    RequestStatusUpdate,
    ResetPayload,
)
from swift_responder.storage import DispatchStore, SQLiteDispatchStore
from swift_responder.tracker import AmbulanceTracker, build_default_tracker
from swift_responder.weather import WeatherClient, analyze_weather_impact, weather_icon_url

logger = logging.getLogger(__name__)


def create_app(
    tracker: Optional[AmbulanceTracker] = None,
    store: Optional[DispatchStore] = None,
    ai: Optional[GeminiClient] = None,
    weather: Optional[WeatherClient] = None,
) -> FastAPI:
    if tracker is None:
        tracker = build_default_tracker(store=store)
    store = store or tracker.store
    ai = ai or GeminiClient()
    weather = weather or tracker.weather or WeatherClient()

    app = FastAPI(title="Swift Responder")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.tracker = tracker
    app.state.store = store

    @app.on_event("startup")
    def startup() -> None:
        configure_logging()
        if isinstance(store, SQLiteDispatchStore):
            store.init_db()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        tracker.close()

    @app.exception_handler(TrackerError)
    async def tracker_error(request: Request, exc: TrackerError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Dispatch store unavailable"})

    @app.get("/health")
    async def health():
        return {"status": "ok", "tracker": tracker.status.value}

    @app.get("/tracker")
    async def tracker_state():
        return tracker.snapshot()

    @app.post("/dispatch", status_code=202)
    async def dispatch(payload: Optional[DispatchPayload] = None):
        payload = payload or DispatchPayload()
        if payload.wait:
            await tracker.dispatch(payload.to_criteria(), payload.use_ai)
        else:
            tracker.request_dispatch(payload.to_criteria(), payload.use_ai)
        return tracker.snapshot()

    @app.post("/reset")
    async def reset(payload: Optional[ResetPayload] = None):
        record = tracker.reset(notes=payload.notes if payload else None)
        return {"tracker": tracker.snapshot(), "history": record.to_dict() if record else None}

    @app.post("/location")
    async def update_location(payload: LocationUpdate):
        tracker.location.update(
            payload.latitude,
            payload.longitude,
            accuracy_m=payload.accuracy_m,
            speed_mps=payload.speed_mps,
            heading=payload.heading,
        )
        return tracker.location.to_dict()

    @app.post("/location/error")
    async def location_error(payload: LocationError):
        message = tracker.location.report_error(payload.code)
        return {"message": message, "location": tracker.location.to_dict()}

    @app.put("/location/mode")
    async def location_mode(payload: LocationMode):
        tracker.location.set_live(payload.live)
        return tracker.location.to_dict()

    @app.post("/hospitals/suggest")
    def suggest(payload: HospitalSuggestRequest):
        result = suggest_hospitals(ai, payload.needs, payload.location)
        if result.errors:
            raise HTTPException(status_code=422, detail={"message": result.message, "errors": result.errors})
        return {
            "message": result.message,
            "data": [s.model_dump(by_alias=True) for s in result.data] if result.data is not None else None,
        }

    @app.get("/history")
    def list_history(start: Optional[float] = None, end: Optional[float] = None):
        if start is not None or end is not None:
            records = store.get_history_by_range(start or 0.0, end if end is not None else time.time())
        else:
            records = store.get_all_history()
        return [r.to_dict() for r in records]

    @app.get("/history/stats")
    def history_stats():
        return dispatch_statistics(store.get_all_history())

    @app.get("/history/export/pdf")
    def export_history_pdf():
        content = history_pdf(store.get_all_history()[:100])
        return StreamingResponse(
            io.BytesIO(content),
            media_type="application/pdf",
            headers={"Content-Disposition": "attachment; filename=dispatch_history.pdf"},
        )

    @app.delete("/history/{history_id}")
    def delete_history(history_id: str):
        if not store.delete_history(history_id):
            raise HTTPException(status_code=404, detail="History record not found")
        return {"ok": True, "history_id": history_id}

    @app.delete("/history")
    def clear_history():
        store.clear_history()
        return {"ok": True}

    @app.post("/requests", status_code=201)
    def create_request(payload: EmergencyRequestCreate):
        now = time.time()
        request = payload.to_request(f"request-{int(now * 1000)}-{uuid4().hex[:8]}", now)
        store.save_request(request)
        return request.to_dict()

    @app.get("/requests")
    def list_requests():
        return [r.to_dict() for r in store.get_all_requests()]

    @app.patch("/requests/{request_id}/status")
    def update_request_status(request_id: str, payload: RequestStatusUpdate):
        request = store.update_request_status(request_id, payload.status)
        if request is None:
            raise HTTPException(status_code=404, detail="Emergency request not found")
        return request.to_dict()

    @app.get("/preferences/{key}")
    def get_preference(key: str):
        value = store.get_preference(key)
        if value is None:
            raise HTTPException(status_code=404, detail="Preference not set")
        return {"key": key, "value": value}

    @app.put("/preferences/{key}")
    def put_preference(key: str, payload: PreferenceValue):
        store.save_preference(key, payload.value)
        return {"key": key, "value": payload.value}

    @app.get("/weather")
    def current_weather(latitude: Optional[float] = None, longitude: Optional[float] = None):
        if latitude is not None and longitude is not None:
            location = Coordinates(latitude, longitude)
        else:
            location = tracker.location.current
        data = weather.current_weather(location)
        if data is None:
            return {"weather": None, "impact": None, "alerts": []}
        return {
            "weather": {**asdict(data), "icon_url": weather_icon_url(data.icon)},
            "impact": asdict(analyze_weather_impact(data)),
            "alerts": [asdict(alert) for alert in weather.weather_alerts(location)],
        }

    return app


app = create_app()


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    configure_logging()
    logger.info("Swift Responder running on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run()
