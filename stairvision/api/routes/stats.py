"""Stats endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from stairvision.api.schemas.models import StatsSchema
from stairvision.api.services.engine import StairEngine
from stairvision.api.services.state import get_engine

router = APIRouter()


@router.get("/stats", response_model=StatsSchema)
def stats(engine: StairEngine = Depends(get_engine)) -> StatsSchema:
    """Return processing statistics plus output-channel and cloud status."""

    status = engine.status()
    report = engine.latest_report()
    common = dict(
        frames_processed=engine.frames_processed,
        stream_fps=engine.stream_fps(),
        paused=engine.paused,
        error=engine.last_error,
        **status,
    )
    common.pop("closed", None)
    if report is None:
        return StatsSchema(fps=0.0, **common)
    return StatsSchema(
        fps=report.fps,
        detections=len(report.detections),
        max_confidence=report.max_confidence,
        hazard=report.confirmed,
        **common,
    )
