"""Frame-level aggregation of detections.

- `select_primary` reduces a frame to the one detection worth talking about
- `DetectionSmoother` confirms hazards over a short window to suppress flicker
- `ObstacleHistory` remembers recent primaries for "replay last alert"
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable

from stairvision.core.types import Detection, ObstacleEvent

# Distances are capped at the far bucket (5 m), so proximity dominates confidence.
PRIORITY_MAX_METERS = 5.0


def priority_score(det: Detection) -> float:
    return (PRIORITY_MAX_METERS - det.distance_meters) + det.confidence


def select_primary(detections: Iterable[Detection]) -> Detection | None:
    """Return the closest/most confident detection; first seen wins ties."""

    best: Detection | None = None
    best_score = 0.0
    for det in detections:
        score = priority_score(det)
        if best is None or score > best_score:
            best = det
            best_score = score
    return best


class DetectionSmoother:
    """Report a confirmed hazard when at least `min_hits` of the last `window`
    frames had detections."""

    def __init__(self, window: int = 5, min_hits: int = 2) -> None:
        if window <= 0:
            raise ValueError("window must be >= 1")
        if not 1 <= min_hits <= window:
            raise ValueError("min_hits must be in [1, window]")
        self.window = int(window)
        self.min_hits = int(min_hits)
        self._history: deque[bool] = deque(maxlen=self.window)

    def update(self, present: bool) -> bool:
        self._history.append(bool(present))
        return sum(self._history) >= self.min_hits

    def reset(self) -> None:
        self._history.clear()

    @property
    def hits(self) -> int:
        return sum(self._history)


class ObstacleHistory:
    """Newest-first ring buffer of recent primary detections."""

    def __init__(self, capacity: int = 5) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be >= 1")
        self.capacity = int(capacity)
        self._events: deque[ObstacleEvent] = deque(maxlen=self.capacity)
        self._lock = threading.Lock()

    def record(self, det: Detection, now: float) -> ObstacleEvent:
        event = ObstacleEvent(
            timestamp=now,
            stair_type=det.stair_type,
            distance_meters=det.distance_meters,
            confidence=det.confidence,
        )
        with self._lock:
            # appendleft on a bounded deque evicts from the right (oldest).
            self._events.appendleft(event)
        return event

    def latest(self) -> ObstacleEvent | None:
        with self._lock:
            return self._events[0] if self._events else None

    def entries(self) -> list[ObstacleEvent]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
