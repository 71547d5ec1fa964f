from __future__ import annotations

import asyncio
import logging
import time

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from stairvision.api.schemas.models import report_payload
from stairvision.api.services.engine import StairEngine
from stairvision.api.services.state import get_engine

router = APIRouter()

logger = logging.getLogger(__name__)


def _is_closed_send_error(exc: BaseException) -> bool:
    # Uvicorn raises this when an ASGI websocket.send happens after close.
    if not isinstance(exc, RuntimeError):
        return False
    msg = str(exc)
    return "Unexpected ASGI message 'websocket.send'" in msg or "response already completed" in msg


@router.websocket("/stream/metadata")
async def stream_metadata(ws: WebSocket):
    await ws.accept()
    engine: StairEngine = await asyncio.to_thread(get_engine)

    async def _poll_and_handle_ping() -> None:
        try:
            msg = await asyncio.wait_for(ws.receive_json(), timeout=0.001)
        except asyncio.TimeoutError:
            return
        except WebSocketDisconnect:
            raise
        except Exception:
            logger.debug("Ignoring malformed websocket message", exc_info=True)
            return
        if not isinstance(msg, dict) or msg.get("type") != "ping":
            return
        await ws.send_json({"type": "pong", "t": msg.get("t"), "server_time": time.time()})

    try:
        async for report in engine.metadata_stream():
            await _poll_and_handle_ping()
            try:
                payload = report_payload(report, engine.stream_fps())
            except Exception:
                # Keep the websocket alive even if one frame fails serialization.
                logger.exception("Failed to serialize metadata frame")
                continue
            try:
                await ws.send_json(payload)
            except Exception as e:
                if _is_closed_send_error(e) or isinstance(e, WebSocketDisconnect):
                    return
                raise
    except WebSocketDisconnect:
        return
    except Exception:
        logger.exception("Metadata websocket crashed")
        await ws.close(code=1011)
