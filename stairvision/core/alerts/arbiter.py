"""Rate-limited announce decisions.

Two logical states, hazard and clear, re-evaluated every frame:

- hazard: announce when `min_hazard_interval_s` elapsed since the last hazard
  announcement, or immediately when the previous frame was clear
- clear: announce "path clear" only every `clear_interval_s`; a hazard -> clear
  transition alone never triggers it

All comparisons take `now` explicitly so tests can drive time by hand.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass
class AlertState:
    last_alert_at: float | None = None
    last_clear_at: float | None = None
    last_hazard_present: bool = False


@dataclass(frozen=True)
class AlertDecision:
    announce: bool
    hazard: bool
    # True when this frame entered the hazard state.
    edge: bool = False


def _elapsed(since: float | None, now: float, interval: float) -> bool:
    return since is None or (now - since) >= interval


class AlertArbiter:
    """Decide, each frame, whether speech/vibration is due."""

    def __init__(self, min_hazard_interval_s: float = 2.0, clear_interval_s: float = 7.0) -> None:
        if min_hazard_interval_s < 0 or clear_interval_s < 0:
            raise ValueError("intervals must be >= 0")
        self.min_hazard_interval_s = float(min_hazard_interval_s)
        self.clear_interval_s = float(clear_interval_s)
        self.state = AlertState()
        self._lock = threading.Lock()

    def should_announce(self, hazard: bool, now: float) -> bool:
        """Return whether an announcement is due, without changing state."""

        with self._lock:
            return self._decide(hazard, now).announce

    def _decide(self, hazard: bool, now: float) -> AlertDecision:
        s = self.state
        if hazard:
            edge = not s.last_hazard_present
            due = edge or _elapsed(s.last_alert_at, now, self.min_hazard_interval_s)
            return AlertDecision(announce=due, hazard=True, edge=edge)
        return AlertDecision(
            announce=_elapsed(s.last_clear_at, now, self.clear_interval_s), hazard=False
        )

    def evaluate(self, hazard: bool, now: float) -> AlertDecision:
        """Decide for this frame and commit the resulting state."""

        with self._lock:
            decision = self._decide(hazard, now)
            s = self.state
            if decision.announce:
                if hazard:
                    # Never move the alert clock backwards.
                    if s.last_alert_at is None or now > s.last_alert_at:
                        s.last_alert_at = now
                else:
                    s.last_clear_at = now
            s.last_hazard_present = hazard
            return decision

    def reset(self) -> None:
        with self._lock:
            self.state = AlertState()
