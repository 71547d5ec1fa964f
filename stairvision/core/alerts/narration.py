"""Local phrase generation for warnings and "path clear" messages.

Phrases follow `{urgency prefix}{stair type} {distance}` with wording that
escalates as the stairs get closer. Variety between equivalent templates is a
pluggable `PhraseSelector` so tests can pin the exact output.

Everything here is synchronous and pure given its inputs (the selector being
the only state).
"""

from __future__ import annotations

import random
import threading
from collections.abc import Sequence
from typing import Protocol

from stairvision.core.types import Detection, DistanceBucket, ObstacleEvent, Phrase, Urgency

URGENCY_BY_DISTANCE = {
    DistanceBucket.VERY_CLOSE: Urgency.URGENT,
    DistanceBucket.CLOSE: Urgency.WARNING,
    DistanceBucket.MEDIUM: Urgency.NOTICE,
    DistanceBucket.FAR: Urgency.NOTICE,
}

URGENCY_PREFIX = {
    Urgency.URGENT: "Stop! ",
    Urgency.WARNING: "Caution! ",
    Urgency.NOTICE: "",
    Urgency.NONE: "",
}

HAZARD_TEMPLATES: dict[Urgency, tuple[str, ...]] = {
    Urgency.URGENT: (
        "{prefix}{stair} {distance}!",
        "{prefix}{stair} right in front of you!",
        "{prefix}{stair} extremely close!",
    ),
    Urgency.WARNING: (
        "{prefix}{stair} {distance}, proceed carefully.",
        "{prefix}{stair} detected {distance}, watch your step.",
    ),
    Urgency.NOTICE: (
        "{prefix}{stair} detected {distance}.",
        "{prefix}{stair} visible {distance}.",
    ),
}

# Within this many seconds of the last hazard the clear message nudges forward.
RECENT_HAZARD_S = 10.0

CLEAR_AFTER_HAZARD = ("Path clear, continue forward.",)
CLEAR_IDLE = (
    "Scanning for obstacles, path clear.",
    "Path looks clear.",
    "No obstacles detected.",
    "Clear ahead.",
)

NO_HISTORY = "No recent obstacles detected."
CLOUD_APOLOGY = "Sorry, I couldn't analyze the scene. Please try again later."
CLOUD_BUSY = "Please wait, analyzing the scene."


class PhraseSelector(Protocol):
    def choose(self, options: Sequence[str], key: str) -> str:
        """Pick one of `options`; `key` identifies the template family."""


class FirstPhraseSelector:
    """Always the first template. Fully deterministic."""

    def choose(self, options: Sequence[str], key: str) -> str:
        return options[0]


class RoundRobinSelector:
    """Cycle through templates independently per family."""

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}
        self._lock = threading.Lock()

    def choose(self, options: Sequence[str], key: str) -> str:
        with self._lock:
            i = self._counters.get(key, 0)
            self._counters[key] = i + 1
        return options[i % len(options)]


class SeededRandomSelector:
    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)
        self._lock = threading.Lock()

    def choose(self, options: Sequence[str], key: str) -> str:
        with self._lock:
            return self._rng.choice(list(options))


def make_selector(policy: str, seed: int | None = None) -> PhraseSelector:
    """Build a selector from a config policy name (first|round_robin|random)."""

    if policy == "first":
        return FirstPhraseSelector()
    if policy == "round_robin":
        return RoundRobinSelector()
    if policy == "random":
        return SeededRandomSelector(seed)
    raise ValueError("phrase policy must be first|round_robin|random")


def _sentence(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


def numeric_distance(meters: float) -> str:
    whole = int(meters)
    if whole < 1:
        return "less than 1 meter ahead"
    if whole == 1:
        return "1 meter ahead"
    return f"{whole} meters ahead"


class NarrationEngine:
    """Turn detections into short spoken phrases."""

    def __init__(self, selector: PhraseSelector | None = None, numeric: bool = False) -> None:
        self.selector: PhraseSelector = selector or FirstPhraseSelector()
        self.numeric = bool(numeric)

    @staticmethod
    def urgency_for(distance: DistanceBucket) -> Urgency:
        return URGENCY_BY_DISTANCE[distance]

    def describe_distance(self, det: Detection) -> str:
        if self.numeric:
            return numeric_distance(det.distance_meters)
        return det.distance_description

    def hazard_phrase(self, det: Detection) -> Phrase:
        urgency = self.urgency_for(det.distance)
        template = self.selector.choose(HAZARD_TEMPLATES[urgency], f"hazard:{urgency.value}")
        text = template.format(
            prefix=URGENCY_PREFIX[urgency],
            stair=det.type_description,
            distance=self.describe_distance(det),
        )
        return Phrase(text=_sentence(text), urgency=urgency)

    def clear_phrase(self, seconds_since_hazard: float | None = None) -> Phrase:
        recent = seconds_since_hazard is not None and seconds_since_hazard < RECENT_HAZARD_S
        if recent:
            text = self.selector.choose(CLEAR_AFTER_HAZARD, "clear:recent")
        else:
            text = self.selector.choose(CLEAR_IDLE, "clear:idle")
        return Phrase(text=text, urgency=Urgency.NONE)

    def phrase_for(
        self, primary: Detection | None, seconds_since_hazard: float | None = None
    ) -> Phrase:
        """Hazard phrase for a primary detection, clear phrase otherwise."""

        if primary is None:
            return self.clear_phrase(seconds_since_hazard)
        return self.hazard_phrase(primary)

    def replay_phrase(self, event: ObstacleEvent | None, now: float) -> Phrase:
        if event is None:
            return Phrase(text=NO_HISTORY, urgency=Urgency.NONE)
        seconds_ago = max(0, int(now - event.timestamp))
        text = (
            f"Last detection: {event.stair_type.description}, "
            f"{int(event.distance_meters)} meters, {seconds_ago} seconds ago."
        )
        return Phrase(text=text, urgency=Urgency.NONE)
