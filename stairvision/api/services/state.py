"""In-process state for settings and the stair engine.

FastAPI routes use this module to access (and hot-reload) the singleton
`StairEngine` instance.
"""

from __future__ import annotations

from threading import RLock

from stairvision.api.services.engine import StairEngine
from stairvision.core.config.settings import StairVisionSettings, load_settings, settings_to_dict

_settings: StairVisionSettings | None = None
_engine: StairEngine | None = None
_lock = RLock()


def get_settings() -> StairVisionSettings:
    """Return cached settings, loading them on first use."""

    global _settings
    with _lock:
        if _settings is None:
            _settings = load_settings()
    return _settings


def reload_settings(data: dict | None = None) -> StairVisionSettings:
    """Reload settings and restart the engine if it is running.

    Args:
        data: Optional patch dict merged into the current settings.
    """

    global _settings, _engine
    with _lock:
        base = _settings if _settings is not None else load_settings()
        if data:
            _settings = StairVisionSettings(**{**settings_to_dict(base), **data})
        else:
            _settings = load_settings()
        if _engine:
            _engine.stop()
            _engine = StairEngine(_settings)
            _engine.start()
    return _settings


def get_engine() -> StairEngine:
    """Return the singleton engine instance, creating and starting it if needed."""

    global _engine
    with _lock:
        if _engine is None:
            _engine = StairEngine(get_settings())
            _engine.start()
    return _engine


def peek_engine() -> StairEngine | None:
    """Return the engine if one exists, without creating it."""

    with _lock:
        return _engine


def stop_engine() -> None:
    """Stop and discard the singleton engine instance (if present)."""

    global _engine
    with _lock:
        if _engine is not None:
            _engine.stop()
            _engine = None
