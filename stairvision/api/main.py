"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stairvision.api.routes import alerts, assist, config, control, health, stats, stream


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler.

    Ensures the engine (and its speech/cloud workers) is stopped on shutdown.
    """

    from stairvision.api.services.state import stop_engine

    yield
    stop_engine()


app = FastAPI(title="StairVision API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(config.router)
app.include_router(stats.router)
app.include_router(alerts.router)
app.include_router(control.router)
app.include_router(assist.router)
app.include_router(stream.router)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("stairvision.api.main:app", host="0.0.0.0", port=8000, reload=True)
