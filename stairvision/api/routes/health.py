"""Liveness endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from stairvision.api.services.state import peek_engine

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str | None]:
    """Report engine liveness without starting the camera.

    `degraded` means the engine is up but its last capture or pipeline step
    failed; the service itself still answers.
    """

    engine = peek_engine()
    if engine is None:
        return {"status": "ok", "engine": "stopped", "error": None}
    error = engine.last_error
    return {
        "status": "degraded" if error else "ok",
        "engine": "running" if engine.running else "stopped",
        "error": error,
    }
