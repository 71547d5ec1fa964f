"""Rate-limited, single-flight cloud enrichment.

The cloud path is advisory: it runs on its own worker threads and the per-frame
pipeline never waits for it. At most one call is in flight, enforced by a locked
test-and-set. Every failure (timeout, transport error, empty answer) is absorbed
here and replaced by the local phrase, so the user always hears something.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Protocol, Union

from stairvision.core.alerts.narration import CLOUD_APOLOGY, CLOUD_BUSY, NarrationEngine
from stairvision.core.analytics.aggregator import select_primary
from stairvision.core.cloud.prompts import (
    DetectionSummary,
    build_summary,
    encode_frame,
    question_prompt,
    scene_prompt,
)
from stairvision.core.errors import CloudCallError
from stairvision.core.types import Detection, Frame

logger = logging.getLogger(__name__)


class VisionLanguageModel(Protocol):
    def generate(self, image_jpeg: bytes | None, prompt: str) -> str:
        """Return free-text guidance; raise on transport errors."""


@dataclass(frozen=True)
class CloudSuccess:
    text: str


@dataclass(frozen=True)
class CloudFailure:
    reason: str
    detail: str = ""


CloudResult = Union[CloudSuccess, CloudFailure]


@dataclass
class CloudCallState:
    in_flight: bool = False
    last_call_at: float | None = None


class CloudEnrichmentClient:
    """Gatekeeper and dispatcher for vision-language calls.

    Args:
        model: The vision-language backend.
        narration: Local phrase generator used for fallbacks.
        deliver: Callback receiving the text to speak (usually
            `FeedbackMediator.deliver`).
        cooldown_s: Minimum time between non-forced scene calls.
        timeout_s: Upper bound on a single model call.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        model: VisionLanguageModel,
        narration: NarrationEngine,
        deliver: Callable[[str], object],
        cooldown_s: float = 8.0,
        timeout_s: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
        image_size: int = 512,
    ) -> None:
        self.model = model
        self.narration = narration
        self.deliver = deliver
        self.cooldown_s = float(cooldown_s)
        self.timeout_s = float(timeout_s)
        self.clock = clock
        self.image_size = int(image_size)
        self.state = CloudCallState()
        self.last_result: CloudResult | None = None
        self.calls_started = 0
        self.closed = False
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cloud")
        # Model calls run here so a hung call can be abandoned after `timeout_s`.
        self._io = ThreadPoolExecutor(max_workers=2, thread_name_prefix="cloud-io")

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self.state.in_flight

    def try_acquire(self, has_detections: bool, force: bool, now: float) -> bool:
        """Atomically check the gate and, on success, mark a call in flight."""

        with self._lock:
            s = self.state
            if self.closed or s.in_flight:
                return False
            if not has_detections and not force:
                return False
            if (
                not force
                and s.last_call_at is not None
                and (now - s.last_call_at) < self.cooldown_s
            ):
                return False
            s.in_flight = True
            s.last_call_at = now
            self.calls_started += 1
            return True

    def _release(self) -> None:
        with self._lock:
            self.state.in_flight = False

    def request(
        self,
        frame: Frame | None,
        detections: Sequence[Detection],
        force: bool = False,
    ) -> Future[CloudResult] | None:
        """Start a scene analysis if the gate allows it.

        Returns the future of the tagged result, or `None` when rejected.
        """

        now = self.clock()
        if not self.try_acquire(bool(detections), force, now):
            return None
        primary = select_primary(detections)
        summary = build_summary(primary) if primary is not None else None
        try:
            image = encode_frame(frame, self.image_size)
        except Exception:
            logger.exception("Failed to encode frame for cloud analysis")
            image = None
        prompt = scene_prompt(summary)
        logger.debug("Starting cloud scene analysis (force=%s)", force)
        try:
            return self._executor.submit(self._enrich, image, prompt, summary)
        except RuntimeError:
            # Executor already shut down.
            self._release()
            return None

    def ask(self, frame: Frame | None, question: str) -> Future[CloudResult] | None:
        """Answer a user question about the scene (ignores the cooldown)."""

        with self._lock:
            busy = self.state.in_flight or self.closed
            if not busy:
                self.state.in_flight = True
                self.calls_started += 1
        if busy:
            self._safe_deliver(CLOUD_BUSY)
            return None
        try:
            image = encode_frame(frame, self.image_size)
        except Exception:
            logger.exception("Failed to encode frame for question")
            image = None
        try:
            return self._executor.submit(self._answer, image, question_prompt(question))
        except RuntimeError:
            self._release()
            return None

    def _call(self, image: bytes | None, prompt: str) -> CloudResult:
        try:
            fut = self._io.submit(self.model.generate, image, prompt)
        except RuntimeError as exc:
            return CloudFailure("transport", str(exc))
        try:
            text = fut.result(timeout=self.timeout_s)
        except FutureTimeoutError:
            fut.cancel()
            return CloudFailure("timeout", f"no answer after {self.timeout_s:.1f}s")
        except CloudCallError as exc:
            return CloudFailure(exc.reason, str(exc))
        except Exception as exc:
            return CloudFailure("transport", repr(exc))
        text = (text or "").strip()
        if not text:
            return CloudFailure("empty", "model returned no text")
        return CloudSuccess(text)

    def fallback_text(self, summary: DetectionSummary | None) -> str:
        """Local phrase used when the cloud answer is unavailable."""

        if summary is None:
            return self.narration.clear_phrase().text
        return self.narration.hazard_phrase(summary.detection).text

    def _enrich(
        self, image: bytes | None, prompt: str, summary: DetectionSummary | None
    ) -> CloudResult:
        try:
            result = self._call(image, prompt)
            self.last_result = result
            if isinstance(result, CloudSuccess):
                logger.info("Cloud guidance: %s", result.text)
                self._safe_deliver(result.text)
            else:
                logger.warning("Cloud analysis failed (%s): %s", result.reason, result.detail)
                self._safe_deliver(self.fallback_text(summary))
            return result
        finally:
            self._release()

    def _answer(self, image: bytes | None, prompt: str) -> CloudResult:
        try:
            result = self._call(image, prompt)
            self.last_result = result
            if isinstance(result, CloudSuccess):
                self._safe_deliver(result.text)
            else:
                logger.warning("Cloud question failed (%s): %s", result.reason, result.detail)
                self._safe_deliver(CLOUD_APOLOGY)
            return result
        finally:
            self._release()

    def _safe_deliver(self, text: str) -> None:
        if self.closed:
            logger.debug("Cloud client closed, dropping result")
            return
        try:
            self.deliver(text)
        except Exception:
            logger.exception("Failed to deliver cloud guidance")

    def close(self, wait: bool = False) -> None:
        """Stop accepting calls; in-flight calls finish on their own."""

        with self._lock:
            self.closed = True
        self._executor.shutdown(wait=wait)
        self._io.shutdown(wait=False)
