from __future__ import annotations

import asyncio

from swift_responder.config import TrackerConfig, configure_logging
from swift_responder.models import SelectionCriteria
from swift_responder.selection import analyze_ambulance_suitability, equipment_recommendations
from swift_responder.storage import InMemoryDispatchStore
from swift_responder.tracker import TrackerStatus, build_default_tracker

MAX_TICKS = 2000


async def run_demo() -> None:
    config = TrackerConfig(dispatch_delay_s=0.5, auto_tick=False)
    store = InMemoryDispatchStore()
    tracker = build_default_tracker(config=config, store=store)
    criteria = SelectionCriteria(medical_needs="chest pain, suspected heart attack", severity="critical", patient_age=61)

    print("=== Swift Responder Dispatch Simulation ===")
    print(f"Caller location: {tracker.location.current.latitude:.4f}, {tracker.location.current.longitude:.4f}")
    recommended = equipment_recommendations(criteria.medical_needs)
    print(f"Critical equipment: {', '.join(recommended['critical'])}")

    status = await tracker.dispatch(criteria)
    if status is not TrackerStatus.DISPATCHED:
        print("No ambulance could be dispatched.")
        return

    report = analyze_ambulance_suitability(tracker.dispatched, criteria, tracker.location.current)
    print(f"Dispatched: {tracker.dispatched.ambulance_id} ({tracker.dispatched.ambulance_type.value})")
    print(f"Suitability confidence: {report.confidence}% | warnings: {', '.join(report.warnings) or 'None'}")
    print(f"Destination: {tracker.destination.name} - {tracker.destination.address}")
    print(f"Initial distance: {tracker.distance:.2f} km, ETA {tracker.eta} min")

    for _ in range(MAX_TICKS):
        await tracker.tick()
        if tracker.status is TrackerStatus.ARRIVED:
            break
        if tracker.tick_count % 15 == 0:
            print(f" - tick {tracker.tick_count}: {tracker.distance:.2f} km remaining, ETA {tracker.eta} min")

    print(f"Status: {tracker.status.value} after {tracker.tick_count} ticks")
    record = tracker.reset()
    if record:
        print(f"History: {record.outcome.value}, {record.duration_minutes} min")
    tracker.close()


def main() -> None:
    configure_logging("WARNING")
    asyncio.run(run_demo())


if __name__ == "__main__":
    main()
