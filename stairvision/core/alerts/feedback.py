"""Single owner of the audio and haptic output channels.

Only one phrase is active at a time: every request flushes whatever is queued
(last writer wins), so a late cloud answer replaces the local warning instead of
talking over it. When speech is unavailable the mediator degrades to tones and
reports it through `status()` rather than failing.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from stairvision.core.alerts.arbiter import AlertArbiter
from stairvision.core.alerts.devices import HapticOutput, SpeechOutput, ToneOutput
from stairvision.core.alerts.narration import NarrationEngine
from stairvision.core.errors import OutputDeviceUnavailable
from stairvision.core.types import Detection, DistanceBucket, LateralDirection, Phrase

logger = logging.getLogger(__name__)

# Waveforms: [delay, on, off, on, ...] in ms, with matching 0-255 amplitudes.
INTENSITY_HIGH = 255
INTENSITY_MEDIUM = 180
INTENSITY_LOW = 100

HAPTIC_PATTERNS: dict[DistanceBucket, tuple[tuple[int, ...], tuple[int, ...]]] = {
    DistanceBucket.VERY_CLOSE: (
        (0, 100, 50, 100, 50, 100),
        (0, INTENSITY_HIGH, 0, INTENSITY_HIGH, 0, INTENSITY_HIGH),
    ),
    DistanceBucket.CLOSE: ((0, 200, 100, 200), (0, INTENSITY_MEDIUM, 0, INTENSITY_MEDIUM)),
    DistanceBucket.MEDIUM: ((0, 150, 300, 150), (0, INTENSITY_LOW, 0, INTENSITY_LOW)),
    DistanceBucket.FAR: ((0, 100, 500), (0, INTENSITY_LOW, 0)),
}
LATERAL_PATTERN = (
    (0, 50, 100, 50, 100, 50),
    (0, INTENSITY_LOW, 0, INTENSITY_LOW, 0, INTENSITY_LOW),
)

# (frequency Hz, duration ms)
DISTANCE_TONES: dict[DistanceBucket, tuple[int, int]] = {
    DistanceBucket.VERY_CLOSE: (1000, 500),
    DistanceBucket.CLOSE: (800, 300),
    DistanceBucket.MEDIUM: (600, 200),
    DistanceBucket.FAR: (400, 150),
}
CLEAR_TONE = (400, 200)
GENERIC_TONE = (600, 100)


class FeedbackMediator:
    """Serialize speech and haptics coming from the local and cloud paths."""

    def __init__(
        self,
        speech: SpeechOutput | None,
        haptics: HapticOutput | None,
        tones: ToneOutput | None,
        arbiter: AlertArbiter,
        narration: NarrationEngine,
        clock: Callable[[], float] = time.monotonic,
        min_pulse_interval_s: float = 0.5,
        audio_enabled: bool = True,
        haptics_enabled: bool = True,
    ) -> None:
        self.speech = speech
        self.haptics = haptics
        self.tones = tones
        self.arbiter = arbiter
        self.narration = narration
        self.clock = clock
        self.min_pulse_interval_s = float(min_pulse_interval_s)
        self.audio_enabled = bool(audio_enabled)
        self.haptics_enabled = bool(haptics_enabled)
        self.speech_available = speech is not None
        self.active_phrase: str | None = None
        self.closed = False
        # One motor, so one inter-pulse clock for every waveform.
        self._last_pulse_at: float | None = None
        self._lock = threading.RLock()

    def _degrade_speech(self) -> None:
        if self.speech_available:
            logger.error("Speech output failed, degrading to tones")
        self.speech_available = False

    def _tone(self, tone: tuple[int, int]) -> None:
        if self.tones is None:
            return
        try:
            self.tones.play_tone(*tone)
        except Exception:
            logger.exception("Failed to play tone")

    def speak(self, text: str, fallback_tone: tuple[int, int] = GENERIC_TONE) -> bool:
        """Speak `text`, replacing any queued phrase. Returns True when spoken."""

        with self._lock:
            if self.closed or not self.audio_enabled or not text:
                return False
            if self.speech is not None and self.speech_available:
                try:
                    self.speech.speak(text, flush_previous=True)
                    self.active_phrase = text
                    logger.debug("Speaking: %s", text)
                    return True
                except OutputDeviceUnavailable:
                    self._degrade_speech()
                except Exception:
                    logger.exception("Speech request failed")
                    self._degrade_speech()
            self._tone(fallback_tone)
            return False

    def announce(
        self,
        phrase: Phrase,
        distance: DistanceBucket | None = None,
        tone: tuple[int, int] = GENERIC_TONE,
    ) -> bool:
        """Speak a narrated phrase; the tone fallback encodes the distance."""

        if distance is not None:
            tone = DISTANCE_TONES[distance]
        return self.speak(phrase.text, fallback_tone=tone)

    def speak_if_due(
        self,
        hazard: bool,
        primary: Detection | None,
        now: float | None = None,
        seconds_since_hazard: float | None = None,
        announce_clear: bool = True,
    ) -> Phrase | None:
        """Ask the arbiter whether an announcement is due and narrate it.

        With `announce_clear=False` the arbiter still tracks clear frames but
        "path clear" is never spoken. Returns the phrase that was produced, or
        `None` when nothing was due.
        """

        now = self.clock() if now is None else now
        decision = self.arbiter.evaluate(hazard, now)
        if not decision.announce:
            return None
        if hazard and primary is not None:
            phrase = self.narration.hazard_phrase(primary)
            self.announce(phrase, primary.distance)
        elif hazard or not announce_clear:
            return None
        else:
            phrase = self.narration.clear_phrase(seconds_since_hazard)
            self.announce(phrase, tone=CLEAR_TONE)
        return phrase

    def _pulse(self, pattern: tuple[tuple[int, ...], tuple[int, ...]]) -> bool:
        with self._lock:
            if self.closed or not self.haptics_enabled or self.haptics is None:
                return False
            now = self.clock()
            last = self._last_pulse_at
            if last is not None and (now - last) < self.min_pulse_interval_s:
                return False
            timings, intensities = pattern
            try:
                self.haptics.vibrate(timings, intensities)
            except Exception:
                logger.exception("Vibration failed")
                return False
            self._last_pulse_at = now
            return True

    def pulse_for_distance(self, distance: DistanceBucket) -> bool:
        """Distance-coded vibration; closer stairs pulse harder and faster."""

        return self._pulse(HAPTIC_PATTERNS[distance])

    def pulse_lateral(self, direction: LateralDirection) -> bool:
        sent = self._pulse(LATERAL_PATTERN)
        if sent:
            logger.debug("Lateral guidance vibration: move %s", direction.value)
        return sent

    def deliver(self, text: str) -> bool:
        """Entry point for cloud guidance; dropped once the mediator is closed."""

        if self.closed:
            logger.debug("Mediator closed, dropping late guidance")
            return False
        return self.speak(text)

    def cancel_all(self) -> None:
        with self._lock:
            self.active_phrase = None
            if self.speech is not None:
                try:
                    self.speech.stop()
                except Exception:
                    logger.exception("Failed to stop speech")
            if self.haptics is not None:
                try:
                    self.haptics.cancel()
                except Exception:
                    logger.exception("Failed to cancel vibration")

    def set_audio_enabled(self, enabled: bool) -> None:
        self.audio_enabled = bool(enabled)
        if not enabled and self.speech is not None:
            try:
                self.speech.stop()
            except Exception:
                logger.exception("Failed to stop speech")

    def set_haptics_enabled(self, enabled: bool) -> None:
        self.haptics_enabled = bool(enabled)
        if not enabled and self.haptics is not None:
            try:
                self.haptics.cancel()
            except Exception:
                logger.exception("Failed to cancel vibration")

    def close(self) -> None:
        self.cancel_all()
        with self._lock:
            self.closed = True
        shutdown = getattr(self.speech, "shutdown", None)
        if callable(shutdown):
            shutdown()

    def status(self) -> dict[str, bool]:
        """Passive status indicator for the UI/API."""

        return {
            "speech_available": bool(self.speech_available),
            "audio_enabled": self.audio_enabled,
            "haptics_enabled": self.haptics_enabled,
            "closed": self.closed,
        }

