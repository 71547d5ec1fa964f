"""Exception types raised by the stair detection pipeline."""

from __future__ import annotations


class StairVisionError(Exception):
    """Base class for pipeline errors."""


class ModelLoadError(StairVisionError):
    """The inference model could not be loaded. Unrecoverable at startup."""


class OutputDeviceUnavailable(StairVisionError):
    """A speech, tone or haptic device failed to initialize or to play."""


class CloudCallError(StairVisionError):
    """A cloud vision-language call failed.

    `reason` is one of "timeout", "transport" or "empty".
    """

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(message or reason)
        self.reason = reason
