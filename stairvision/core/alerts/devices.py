"""Output device interfaces and adapters.

The feedback mediator talks to three collaborators: a speech engine, a haptic
motor and a tone generator. Speech is backed by `pyttsx3` on desktop hosts;
haptics and tones only have logging adapters here since there is no portable
Python API for them.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from typing import Any, Protocol

import pyttsx3

from stairvision.core.errors import OutputDeviceUnavailable

logger = logging.getLogger(__name__)


class SpeechOutput(Protocol):
    def speak(self, text: str, flush_previous: bool = True) -> None:
        """Speak `text`, replacing anything queued when `flush_previous`."""

    def stop(self) -> None:
        """Stop the current utterance and drop pending ones."""


class HapticOutput(Protocol):
    def vibrate(self, pattern: Sequence[int], intensities: Sequence[int]) -> None:
        """Play a waveform: timings in ms (delay, on, off, on, ...) with 0-255 amplitudes."""

    def cancel(self) -> None:
        """Stop any vibration in progress."""


class ToneOutput(Protocol):
    def play_tone(self, frequency_hz: int, duration_ms: int) -> None:
        """Play a single beep."""


class Pyttsx3Speech:
    """`pyttsx3` speech engine driven from its own worker thread.

    Only the most recent request is kept: a new `speak()` replaces the pending
    text and interrupts the current utterance.
    """

    def __init__(self, rate: int | None = None, voice: str | None = None) -> None:
        try:
            self._engine: Any = pyttsx3.init()
            if rate is not None:
                self._engine.setProperty("rate", int(rate))
            if voice is not None:
                self._engine.setProperty("voice", voice)
        except Exception as exc:
            raise OutputDeviceUnavailable("Text-to-speech engine failed to initialize") from exc
        self._pending: str | None = None
        self._cond = threading.Condition()
        self._running = True
        self._thread = threading.Thread(target=self._loop, name="tts", daemon=True)
        self._thread.start()
        logger.info("Text-to-speech initialized")

    def _loop(self) -> None:
        while True:
            with self._cond:
                while self._running and self._pending is None:
                    self._cond.wait(timeout=0.5)
                if not self._running:
                    return
                text, self._pending = self._pending, None
            try:
                self._engine.say(text)
                self._engine.runAndWait()
            except Exception:
                logger.exception("Speech playback failed")

    def speak(self, text: str, flush_previous: bool = True) -> None:
        if not self._running:
            raise OutputDeviceUnavailable("Text-to-speech engine is shut down")
        with self._cond:
            if flush_previous or self._pending is None:
                self._pending = text
            else:
                self._pending = f"{self._pending} {text}"
            self._cond.notify()
        if flush_previous:
            try:
                self._engine.stop()
            except Exception:
                logger.debug("Speech stop failed", exc_info=True)

    def stop(self) -> None:
        with self._cond:
            self._pending = None
        try:
            self._engine.stop()
        except Exception:
            logger.debug("Speech stop failed", exc_info=True)

    def shutdown(self) -> None:
        self.stop()
        with self._cond:
            self._running = False
            self._cond.notify_all()
        self._thread.join(timeout=2)


class LoggingHaptics:
    """Haptic adapter for hosts without a vibration motor."""

    def vibrate(self, pattern: Sequence[int], intensities: Sequence[int]) -> None:
        logger.info("Vibrate pattern=%s intensities=%s", list(pattern), list(intensities))

    def cancel(self) -> None:
        logger.debug("Vibration cancelled")


class LoggingTones:
    def play_tone(self, frequency_hz: int, duration_ms: int) -> None:
        logger.info("Tone %dHz for %dms", frequency_hz, duration_ms)


def open_speech(enabled: bool = True) -> SpeechOutput | None:
    """Return a speech engine, or `None` when disabled or unavailable."""

    if not enabled:
        return None
    try:
        return Pyttsx3Speech()
    except OutputDeviceUnavailable:
        logger.exception("Speech unavailable, falling back to tones")
        return None
