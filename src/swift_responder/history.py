from __future__ import annotations

import io
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from swift_responder.models import Ambulance, DispatchHistory, DispatchOutcome, Hospital

RECENT_WINDOW_DAYS = 30


def build_history_record(
    ambulance: Ambulance,
    hospital: Hospital,
    started_at: float,
    ended_at: float,
    outcome: DispatchOutcome,
    notes: Optional[str] = None,
) -> DispatchHistory:
    return DispatchHistory(
        history_id=f"history-{int(ended_at * 1000)}-{uuid4().hex[:8]}",
        timestamp=ended_at,
        ambulance=ambulance,
        hospital=hospital,
        duration_minutes=round(max(0.0, ended_at - started_at) / 60),
        outcome=outcome,
        notes=notes,
    )


def history_frame(records: List[DispatchHistory]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "history_id": r.history_id,
                "timestamp": r.timestamp,
                "ambulance_id": r.ambulance.ambulance_id,
                "hospital": r.hospital.name,
                "duration_minutes": r.duration_minutes,
                "outcome": r.outcome.value,
            }
            for r in records
        ],
        columns=["history_id", "timestamp", "ambulance_id", "hospital", "duration_minutes", "outcome"],
    )


def dispatch_statistics(records: List[DispatchHistory], now: Optional[float] = None) -> Dict[str, Any]:
    now = time.time() if now is None else now
    df = history_frame(records)
    counts = df["outcome"].value_counts()
    completed = df[df["outcome"] == DispatchOutcome.COMPLETED.value]
    recent_cutoff = now - RECENT_WINDOW_DAYS * 24 * 60 * 60

    return {
        "total": int(len(df)),
        "completed": int(counts.get(DispatchOutcome.COMPLETED.value, 0)),
        "cancelled": int(counts.get(DispatchOutcome.CANCELLED.value, 0)),
        "transferred": int(counts.get(DispatchOutcome.TRANSFERRED.value, 0)),
        "avg_duration_minutes": round(float(completed["duration_minutes"].mean()), 1) if len(completed) else 0.0,
        "last_30_days": int((df["timestamp"] >= recent_cutoff).sum()),
    }


def _format_ts(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def history_pdf(records: List[DispatchHistory], now: Optional[float] = None) -> bytes:
    buff = io.BytesIO()
    pdf = canvas.Canvas(buff, pagesize=letter)
    width, height = letter
    stats = dispatch_statistics(records, now)

    y = height - 40
    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawString(40, y, "Swift Responder Dispatch History")
    y -= 18
    pdf.setFont("Helvetica", 10)
    pdf.drawString(40, y, f"Generated: {_format_ts(time.time() if now is None else now)}")
    y -= 14
    pdf.drawString(
        40,
        y,
        f"Total: {stats['total']}  |  Completed: {stats['completed']}  |  Cancelled: {stats['cancelled']}"
        f"  |  Avg duration: {stats['avg_duration_minutes']} min",
    )
    y -= 20

    for r in records:
        if y < 100:
            pdf.showPage()
            y = height - 40

        pdf.setStrokeColor(colors.darkred if r.outcome == DispatchOutcome.CANCELLED else colors.darkblue)
        pdf.rect(35, y - 60, width - 70, 55, stroke=1, fill=0)
        pdf.setFont("Helvetica-Bold", 10)
        pdf.drawString(45, y - 18, f"{r.ambulance.ambulance_id} -> {r.hospital.name} | {r.outcome.value}")
        pdf.setFont("Helvetica", 9)
        pdf.drawString(45, y - 32, f"Time: {_format_ts(r.timestamp)}  |  Duration: {r.duration_minutes} min")
        pdf.drawString(45, y - 45, f"Vehicle: {r.ambulance.vehicle}  |  Address: {r.hospital.address}")
        if r.notes:
            pdf.drawString(45, y - 56, f"Notes: {r.notes[:90]}")

        y -= 70

    pdf.save()
    buff.seek(0)
    return buff.read()
