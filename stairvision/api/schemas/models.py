"""Pydantic models for the HTTP/WS API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from stairvision.core.types import Detection, FrameReport


class DetectionSchema(BaseModel):
    """Decoded stair detection (normalized center box)."""

    x: float
    y: float
    w: float
    h: float
    confidence: float
    stair_type: str
    distance: str
    distance_meters: float | None = None

    @classmethod
    def from_detection(cls, det: Detection) -> DetectionSchema:
        return cls(
            x=det.x,
            y=det.y,
            w=det.w,
            h=det.h,
            confidence=det.confidence,
            stair_type=det.stair_type.value,
            distance=det.distance.value,
            distance_meters=det.distance_meters,
        )


class PhraseSchema(BaseModel):
    text: str
    urgency: str


class FrameSchema(BaseModel):
    """Per-frame metadata payload."""

    frame_id: int
    timestamp: float
    detections: list[DetectionSchema]
    primary: DetectionSchema | None = None
    hazard: bool
    confirmed: bool
    max_confidence: float = 0.0
    rejected: int = 0
    announcement: PhraseSchema | None = None
    cloud_requested: bool = False
    paused: bool = False
    fps: float = 0.0
    stream_fps: float | None = None
    profile: dict[str, float] | None = None

    @classmethod
    def from_report(cls, report: FrameReport, stream_fps: float | None = None) -> FrameSchema:
        announcement = report.announcement
        return cls(
            frame_id=report.frame_id,
            timestamp=report.timestamp,
            detections=[DetectionSchema.from_detection(d) for d in report.detections],
            primary=(
                DetectionSchema.from_detection(report.primary) if report.primary is not None else None
            ),
            hazard=report.hazard,
            confirmed=report.confirmed,
            max_confidence=report.max_confidence,
            rejected=report.rejected,
            announcement=(
                PhraseSchema(text=announcement.text, urgency=announcement.urgency.value)
                if announcement is not None
                else None
            ),
            cloud_requested=report.cloud_requested,
            paused=report.paused,
            fps=report.fps,
            stream_fps=stream_fps,
            profile=report.profile,
        )


def report_payload(report: FrameReport, stream_fps: float | None = None) -> dict[str, Any]:
    """JSON-ready dict for a frame report."""

    return FrameSchema.from_report(report, stream_fps).model_dump()


class StatsSchema(BaseModel):
    """High-level summary stats payload."""

    frames_processed: int = 0
    fps: float
    stream_fps: float | None = None
    detections: int = 0
    max_confidence: float = 0.0
    hazard: bool = False
    paused: bool = False
    speech_available: bool = False
    audio_enabled: bool = True
    haptics_enabled: bool = True
    cloud_enabled: bool = False
    cloud_in_flight: bool = False
    cloud_last_result: str | None = None
    history_size: int = 0
    error: str | None = None


class ConfigSchema(BaseModel):
    """Runtime configuration payload."""

    video_source: str
    video_path: str | None = None
    webcam_index: int = Field(default=0, ge=0)
    model_path: str
    model_input_size: int = Field(default=640, gt=0)
    confidence: float = Field(ge=0.3, le=0.95)
    camera_rotation: int = 0
    enable_audio: bool = True
    enable_haptics: bool = True
    enable_lateral_guidance: bool = True
    show_bounding_boxes: bool = True
    numeric_distance: bool = False
    continuous_narrator: bool = True
    phrase_policy: str = "first"
    phrase_seed: int | None = None
    demo_mode: bool = False
    hazard_interval_ms: int = Field(default=2000, ge=500, le=5000)
    clear_interval_ms: int = Field(default=7000, ge=0)
    haptic_interval_ms: int = Field(default=500, ge=0)
    smoothing_enabled: bool = False
    smoothing_window: int = Field(default=5, ge=1)
    smoothing_min_hits: int = Field(default=2, ge=1)
    history_size: int = Field(default=5, ge=1)
    cloud_enabled: bool = False
    cloud_model: str = "gemini-2.0-flash"
    cloud_interval_ms: int = Field(default=8000, ge=0)
    cloud_timeout_s: float = Field(default=15.0, gt=0)
    target_fps: float | None = Field(default=None, ge=0)

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file"}:
            raise ValueError("video_source must be webcam|file")
        return v

    @field_validator("camera_rotation")
    @classmethod
    def _validate_rotation(cls, v: int) -> int:
        if v not in {0, 90, 180, 270}:
            raise ValueError("camera_rotation must be 0|90|180|270")
        return v

    @field_validator("phrase_policy")
    @classmethod
    def _validate_phrase_policy(cls, v: str) -> str:
        if v not in {"first", "round_robin", "random"}:
            raise ValueError("phrase_policy must be first|round_robin|random")
        return v

    @model_validator(mode="after")
    def _validate_smoothing(self) -> ConfigSchema:
        if self.smoothing_min_hits > self.smoothing_window:
            raise ValueError("smoothing_min_hits must be <= smoothing_window")
        return self


class ReplaySchema(BaseModel):
    text: str
    urgency: str


class ControlSchema(BaseModel):
    paused: bool


class AskSchema(BaseModel):
    question: str = Field(min_length=1, max_length=500)


class AssistSchema(BaseModel):
    accepted: bool
