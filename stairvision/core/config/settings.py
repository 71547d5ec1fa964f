"""StairVision configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `SV_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIDENCE_MIN = 0.3
CONFIDENCE_MAX = 0.95
HAZARD_INTERVAL_MIN_MS = 500
HAZARD_INTERVAL_MAX_MS = 5000


class StairVisionSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `SV_` env overrides."""

    video_source: str = Field("webcam", description="webcam|file")
    video_path: str | None = None
    webcam_index: int = 0
    model_path: str = Field("stair_yolo_best_float32.tflite")
    model_input_size: int = 640
    confidence: float = 0.6
    camera_rotation: int = 0

    # Feedback channels
    enable_audio: bool = True
    enable_haptics: bool = True
    enable_lateral_guidance: bool = True
    # Read by client renderers; the service never draws boxes itself.
    show_bounding_boxes: bool = True
    numeric_distance: bool = False
    # Periodic "path clear" announcements while no stairs are in view.
    continuous_narrator: bool = True
    phrase_policy: str = Field("first", description="first|round_robin|random")
    phrase_seed: int | None = None

    # Synthetic detections when the model sees nothing.
    demo_mode: bool = False

    # Alert timing
    hazard_interval_ms: int = 2000
    clear_interval_ms: int = 7000
    haptic_interval_ms: int = 500

    # Temporal smoothing (k hazard frames out of the last n).
    smoothing_enabled: bool = False
    smoothing_window: int = 5
    smoothing_min_hits: int = 2
    history_size: int = 5

    # Cloud enrichment
    cloud_enabled: bool = False
    cloud_model: str = "gemini-2.0-flash"
    cloud_api_key: str | None = None
    cloud_interval_ms: int = 8000
    cloud_timeout_s: float = 15.0

    # Optional cap for processing loop FPS. Use 0 to run as fast as possible.
    target_fps: float | None = None

    model_config = SettingsConfigDict(env_prefix="SV_", validate_assignment=True)

    @field_validator("confidence")
    @classmethod
    def _validate_confidence(cls, v: float) -> float:
        if not CONFIDENCE_MIN <= v <= CONFIDENCE_MAX:
            raise ValueError(f"confidence must be in [{CONFIDENCE_MIN}, {CONFIDENCE_MAX}]")
        return float(v)

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file"}:
            raise ValueError("video_source must be webcam|file")
        return v

    @field_validator("camera_rotation")
    @classmethod
    def _validate_rotation(cls, v: int) -> int:
        if int(v) not in {0, 90, 180, 270}:
            raise ValueError("camera_rotation must be 0|90|180|270")
        return int(v)

    @field_validator("model_input_size")
    @classmethod
    def _validate_input_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("model_input_size must be > 0")
        return int(v)

    @field_validator("hazard_interval_ms")
    @classmethod
    def _validate_hazard_interval(cls, v: int) -> int:
        if not HAZARD_INTERVAL_MIN_MS <= v <= HAZARD_INTERVAL_MAX_MS:
            raise ValueError(
                f"hazard_interval_ms must be in [{HAZARD_INTERVAL_MIN_MS}, {HAZARD_INTERVAL_MAX_MS}]"
            )
        return int(v)

    @field_validator("clear_interval_ms", "haptic_interval_ms", "cloud_interval_ms")
    @classmethod
    def _validate_non_negative_ms(cls, v: int) -> int:
        if v < 0:
            raise ValueError("intervals must be >= 0")
        return int(v)

    @field_validator("smoothing_window", "smoothing_min_hits", "history_size")
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be >= 1")
        return int(v)

    @field_validator("cloud_timeout_s")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("cloud_timeout_s must be > 0")
        return float(v)

    @field_validator("phrase_policy")
    @classmethod
    def _validate_phrase_policy(cls, v: str) -> str:
        v2 = str(v).strip().lower()
        if v2 not in {"first", "round_robin", "random"}:
            raise ValueError("phrase_policy must be first|round_robin|random")
        return v2

    @field_validator("target_fps")
    @classmethod
    def _validate_target_fps(cls, v: float | None) -> float | None:
        if v is None:
            return v
        if v < 0:
            raise ValueError("target_fps must be >= 0")
        return float(v)

    @model_validator(mode="after")
    def _validate_smoothing(self) -> StairVisionSettings:
        if self.smoothing_min_hits > self.smoothing_window:
            raise ValueError("smoothing_min_hits must be <= smoothing_window")
        return self


def settings_to_dict(settings: StairVisionSettings) -> dict[str, Any]:
    """Convert settings to a plain dict."""

    return cast(dict[str, Any], settings.model_dump())


def _fields_set(obj: object) -> set[str]:
    """Return the set of fields explicitly provided/overridden on a Pydantic model."""

    return set(getattr(obj, "model_fields_set", set()))


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/stairvision.config.yml)."""

    return Path(os.getenv("SV_CONFIG", "config/stairvision.config.yml"))


def load_settings() -> StairVisionSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = StairVisionSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in _fields_set(env_settings)
    }

    merged = {**data, **env_overrides}
    return StairVisionSettings(**merged)
