"""Synthetic detections for demo mode.

Used when demo mode is on and the real model finds nothing: the distance cycles
far -> medium -> close -> very close every 50 frames and the stair type rotates
every 100 frames, which exercises every alert tier without real stairs.
"""

from __future__ import annotations

from stairvision.core.types import Detection, DistanceBucket, StairType

_NEXT_DISTANCE = {
    DistanceBucket.FAR: DistanceBucket.MEDIUM,
    DistanceBucket.MEDIUM: DistanceBucket.CLOSE,
    DistanceBucket.CLOSE: DistanceBucket.VERY_CLOSE,
    DistanceBucket.VERY_CLOSE: DistanceBucket.FAR,
}

_DEMO_TYPES = (StairType.DESCENDING, StairType.ASCENDING, StairType.SIDE_VIEW)

_DEMO_BOXES = {
    DistanceBucket.VERY_CLOSE: (0.5, 0.7, 0.6, 0.5),
    DistanceBucket.CLOSE: (0.5, 0.6, 0.4, 0.35),
    DistanceBucket.MEDIUM: (0.5, 0.5, 0.3, 0.25),
    DistanceBucket.FAR: (0.5, 0.4, 0.2, 0.15),
}

DEMO_CONFIDENCE = 0.85


class DemoDetector:
    def __init__(self) -> None:
        self.frame = 0
        self.distance = DistanceBucket.FAR

    def next(self) -> list[Detection]:
        """Return the next synthetic single-detection frame."""

        self.frame += 1
        if self.frame % 50 == 0:
            self.distance = _NEXT_DISTANCE[self.distance]
        stair_type = _DEMO_TYPES[(self.frame // 100) % len(_DEMO_TYPES)]
        x, y, w, h = _DEMO_BOXES[self.distance]
        # Demo boxes carry scripted labels rather than classifier output.
        return [
            Detection(
                x=x,
                y=y,
                w=w,
                h=h,
                confidence=DEMO_CONFIDENCE,
                stair_type=stair_type,
                distance=self.distance,
            )
        ]
