"""Alert replay endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from stairvision.api.schemas.models import ReplaySchema
from stairvision.api.services.engine import StairEngine
from stairvision.api.services.state import get_engine

router = APIRouter()


@router.post("/alerts/replay", response_model=ReplaySchema)
def replay(engine: StairEngine = Depends(get_engine)) -> ReplaySchema:
    """Re-announce the most recent obstacle."""

    if not engine.has_history():
        raise HTTPException(status_code=409, detail="No recent obstacles to replay")
    phrase = engine.replay_last()
    return ReplaySchema(text=phrase.text, urgency=phrase.urgency.value)
