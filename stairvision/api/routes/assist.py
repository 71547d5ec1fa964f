"""On-demand cloud assistance.

Both endpoints only start the request; the answer is spoken by the feedback
mediator when it arrives.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from stairvision.api.schemas.models import AskSchema, AssistSchema
from stairvision.api.services.engine import StairEngine
from stairvision.api.services.state import get_engine

router = APIRouter(prefix="/assist")


def _require_cloud(engine: StairEngine) -> None:
    if not engine.cloud_available():
        raise HTTPException(status_code=503, detail="Cloud assistance is disabled")


@router.post("/analyze", response_model=AssistSchema)
def analyze(engine: StairEngine = Depends(get_engine)) -> AssistSchema:
    """Analyze the current scene now, ignoring the periodic cooldown."""

    _require_cloud(engine)
    if not engine.analyze_scene():
        raise HTTPException(status_code=409, detail="An analysis is already in progress")
    return AssistSchema(accepted=True)


@router.post("/ask", response_model=AssistSchema)
def ask(body: AskSchema, engine: StairEngine = Depends(get_engine)) -> AssistSchema:
    """Ask a free-form question about the current scene."""

    _require_cloud(engine)
    if not engine.ask(body.question):
        raise HTTPException(status_code=409, detail="An analysis is already in progress")
    return AssistSchema(accepted=True)
