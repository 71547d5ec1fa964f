"""Shared type definitions used across the stair detection pipeline.

Small, stable value objects (detections, decode results, per-frame reports) live
here so decoder/classifier/alerting code can stay strongly typed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

Frame = np.ndarray

# Raw inference output: channels (cx, cy, w, h, conf) x anchors.
RawTensor = np.ndarray


class StairType(str, Enum):
    """Orientation category inferred from box geometry."""

    ASCENDING = "ascending"
    DESCENDING = "descending"
    SIDE_VIEW = "side_view"
    SPIRAL = "spiral"
    UNKNOWN = "unknown"

    @property
    def description(self) -> str:
        return _TYPE_DESCRIPTIONS[self]


_TYPE_DESCRIPTIONS = {
    StairType.ASCENDING: "ascending stairs",
    StairType.DESCENDING: "descending stairs",
    StairType.SIDE_VIEW: "stairs from side",
    StairType.SPIRAL: "spiral stairs",
    StairType.UNKNOWN: "stairs",
}


class DistanceBucket(str, Enum):
    """Discretized distance, ordered from nearest to farthest."""

    VERY_CLOSE = "very_close"
    CLOSE = "close"
    MEDIUM = "medium"
    FAR = "far"

    @property
    def meters(self) -> float:
        """Canonical distance used for phrasing and primary selection."""

        return _BUCKET_METERS[self]

    @property
    def description(self) -> str:
        return _BUCKET_DESCRIPTIONS[self]


_BUCKET_METERS = {
    DistanceBucket.VERY_CLOSE: 0.5,
    DistanceBucket.CLOSE: 1.5,
    DistanceBucket.MEDIUM: 3.0,
    DistanceBucket.FAR: 5.0,
}

_BUCKET_DESCRIPTIONS = {
    DistanceBucket.VERY_CLOSE: "immediately ahead",
    DistanceBucket.CLOSE: "1 to 2 meters ahead",
    DistanceBucket.MEDIUM: "2 to 4 meters ahead",
    DistanceBucket.FAR: "far ahead",
}


class Urgency(str, Enum):
    URGENT = "urgent"
    WARNING = "warning"
    NOTICE = "notice"
    NONE = "none"


class HandrailSide(str, Enum):
    """Where a handrail is likely to be, judged from the horizontal position."""

    RIGHT = "right"
    LEFT = "left"
    BOTH = "both"


class LateralDirection(str, Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class Detection:
    """One stair detection in normalized [0, 1] model-input coordinates.

    Build instances through `classify.build_detection` so `stair_type` and
    `distance` always agree with the geometry.
    """

    x: float
    y: float
    w: float
    h: float
    confidence: float
    stair_type: StairType
    distance: DistanceBucket

    @property
    def distance_meters(self) -> float:
        return self.distance.meters

    @property
    def type_description(self) -> str:
        return self.stair_type.description

    @property
    def distance_description(self) -> str:
        return self.distance.description


DetectionFrame = list[Detection]


@dataclass
class DecodeResult:
    """Decoder output for one inference cycle."""

    detections: DetectionFrame
    max_confidence: float = 0.0
    # Anchors at or above the threshold, including malformed ones.
    above_threshold: int = 0
    # Anchors above threshold dropped for invalid geometry.
    rejected: int = 0


@dataclass(frozen=True)
class Phrase:
    """A narrated message plus the urgency it was produced with."""

    text: str
    urgency: Urgency = Urgency.NONE


@dataclass(frozen=True)
class ObstacleEvent:
    """Entry of the obstacle memory used by "replay last alert"."""

    timestamp: float
    stair_type: StairType
    distance_meters: float
    confidence: float


@dataclass
class FrameReport:
    """Metadata payload associated with a processed frame."""

    frame_id: int
    timestamp: float
    detections: DetectionFrame
    primary: Detection | None
    hazard: bool
    confirmed: bool
    max_confidence: float = 0.0
    rejected: int = 0
    announcement: Phrase | None = None
    cloud_requested: bool = False
    paused: bool = False
    fps: float = 0.0
    profile: dict[str, float] | None = None
