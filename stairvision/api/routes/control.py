"""Emergency stop / resume."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from stairvision.api.schemas.models import ControlSchema
from stairvision.api.services.engine import StairEngine
from stairvision.api.services.state import get_engine

router = APIRouter(prefix="/control")


@router.post("/pause", response_model=ControlSchema)
def pause(engine: StairEngine = Depends(get_engine)) -> ControlSchema:
    """Stop all feedback immediately and skip frames until resumed."""

    engine.pause()
    return ControlSchema(paused=engine.paused)


@router.post("/resume", response_model=ControlSchema)
def resume(engine: StairEngine = Depends(get_engine)) -> ControlSchema:
    engine.resume()
    return ControlSchema(paused=engine.paused)
