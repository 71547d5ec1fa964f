"""Heuristic stair classification from box geometry.

Stair orientation and distance are approximated from the normalized box alone:
larger boxes lower in the frame are closer to a forward-facing, ground-oriented
camera. There is no depth sensor or calibration behind these numbers, so the
meter values are illustrative rather than measured.

All thresholds are empirical and live in `ClassifierThresholds` so they can be
recalibrated without touching control flow.
"""

from __future__ import annotations

from dataclasses import dataclass

from stairvision.core.types import (
    Detection,
    DistanceBucket,
    HandrailSide,
    LateralDirection,
    StairType,
)


@dataclass(frozen=True)
class ClassifierThresholds:
    """Empirical constants for stair type and distance heuristics."""

    # Ascending: box in the upper part of the frame, tall, not wide.
    ascending_max_y: float = 0.4
    ascending_min_h: float = 0.3
    ascending_max_ratio: float = 1.2
    # Descending: box in the lower part of the frame, wide.
    descending_min_y: float = 0.6
    descending_min_w: float = 0.4
    descending_min_ratio: float = 1.0
    # Side view: tall and narrow.
    side_max_ratio: float = 0.6
    side_min_h: float = 0.4
    # Spiral: roughly square, medium width (inclusive ranges).
    spiral_ratio_range: tuple[float, float] = (0.8, 1.2)
    spiral_w_range: tuple[float, float] = (0.2, 0.5)
    # distance_score = (100 - y*100) + h*100
    very_close_score: float = 120.0
    close_score: float = 80.0
    medium_score: float = 50.0
    # Step count buckets from box height.
    step_count_buckets: tuple[tuple[float, str], ...] = (
        (0.5, "15-20"),
        (0.3, "10-15"),
        (0.2, "5-10"),
    )
    step_count_default: str = "3-5"
    # Handrail side from horizontal center.
    handrail_right_max_x: float = 0.35
    handrail_left_min_x: float = 0.65
    # Lateral guidance kicks in past this offset from the frame center.
    lateral_offset: float = 0.15


DEFAULT_THRESHOLDS = ClassifierThresholds()

_FIRST_STEP_RANGES = {
    DistanceBucket.VERY_CLOSE: "0.5-1m",
    DistanceBucket.CLOSE: "1-2m",
    DistanceBucket.MEDIUM: "2-3m",
    DistanceBucket.FAR: "3-5m",
}


def classify_stair_type(
    x: float, y: float, w: float, h: float, t: ClassifierThresholds = DEFAULT_THRESHOLDS
) -> StairType:
    """Return the stair orientation; rules are evaluated in order, first match wins."""

    ratio = w / h
    if y < t.ascending_max_y and h > t.ascending_min_h and ratio < t.ascending_max_ratio:
        return StairType.ASCENDING
    if y > t.descending_min_y and w > t.descending_min_w and ratio > t.descending_min_ratio:
        return StairType.DESCENDING
    if ratio < t.side_max_ratio and h > t.side_min_h:
        return StairType.SIDE_VIEW
    r_lo, r_hi = t.spiral_ratio_range
    w_lo, w_hi = t.spiral_w_range
    if r_lo <= ratio <= r_hi and w_lo <= w <= w_hi:
        return StairType.SPIRAL
    return StairType.UNKNOWN


def distance_score(y: float, h: float) -> float:
    """Closeness score: higher means larger and lower in frame."""

    return (100.0 - y * 100.0) + h * 100.0


def estimate_distance(
    y: float, h: float, t: ClassifierThresholds = DEFAULT_THRESHOLDS
) -> DistanceBucket:
    score = distance_score(y, h)
    if score > t.very_close_score:
        return DistanceBucket.VERY_CLOSE
    if score > t.close_score:
        return DistanceBucket.CLOSE
    if score > t.medium_score:
        return DistanceBucket.MEDIUM
    return DistanceBucket.FAR


def classify(
    x: float, y: float, w: float, h: float, t: ClassifierThresholds = DEFAULT_THRESHOLDS
) -> tuple[StairType, DistanceBucket]:
    """Return (stair_type, distance) for a box. Pure and deterministic."""

    return classify_stair_type(x, y, w, h, t), estimate_distance(y, h, t)


def build_detection(
    x: float,
    y: float,
    w: float,
    h: float,
    confidence: float,
    t: ClassifierThresholds = DEFAULT_THRESHOLDS,
) -> Detection:
    """Create a `Detection` whose category and distance are derived from geometry."""

    stair_type, distance = classify(x, y, w, h, t)
    return Detection(
        x=float(x),
        y=float(y),
        w=float(w),
        h=float(h),
        confidence=float(confidence),
        stair_type=stair_type,
        distance=distance,
    )


def estimate_step_count(h: float, t: ClassifierThresholds = DEFAULT_THRESHOLDS) -> str:
    for min_h, label in t.step_count_buckets:
        if h > min_h:
            return label
    return t.step_count_default


def infer_handrail_side(x: float, t: ClassifierThresholds = DEFAULT_THRESHOLDS) -> HandrailSide:
    # Stairs on the left of the frame leave the right-hand wall free, and vice versa.
    if x < t.handrail_right_max_x:
        return HandrailSide.RIGHT
    if x > t.handrail_left_min_x:
        return HandrailSide.LEFT
    return HandrailSide.BOTH


def first_step_range(distance: DistanceBucket) -> str:
    return _FIRST_STEP_RANGES[distance]


def lateral_guidance(
    detection: Detection, t: ClassifierThresholds = DEFAULT_THRESHOLDS
) -> LateralDirection | None:
    """Direction the user should shift to center on the stairs, if any.

    Guidance is given when the stairs are off-center, and always when they are
    very close.
    """

    off_center = abs(detection.x - 0.5) > t.lateral_offset
    if not off_center and detection.distance is not DistanceBucket.VERY_CLOSE:
        return None
    return LateralDirection.RIGHT if detection.x < 0.5 else LateralDirection.LEFT
