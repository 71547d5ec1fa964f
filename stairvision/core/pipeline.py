"""Stair pipeline orchestration.

This module ties together detection, aggregation, alert arbitration, local
narration, haptics and cloud enrichment into a single per-frame processing
pipeline.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

from stairvision.core.alerts.arbiter import AlertArbiter
from stairvision.core.alerts.devices import (
    HapticOutput,
    LoggingHaptics,
    LoggingTones,
    SpeechOutput,
    ToneOutput,
    open_speech,
)
from stairvision.core.alerts.feedback import GENERIC_TONE, FeedbackMediator
from stairvision.core.alerts.narration import NarrationEngine, make_selector
from stairvision.core.analytics.aggregator import DetectionSmoother, ObstacleHistory, select_primary
from stairvision.core.classify import lateral_guidance
from stairvision.core.cloud.client import CloudEnrichmentClient, VisionLanguageModel
from stairvision.core.cloud.gemini import GeminiVisionModel
from stairvision.core.config.settings import StairVisionSettings
from stairvision.core.detectors.demo import DemoDetector
from stairvision.core.detectors.yolo import StairDetector, YoloStairModel
from stairvision.core.types import DecodeResult, Detection, Frame, FrameReport, Phrase, RawTensor

logger = logging.getLogger(__name__)


class Detector(Protocol):
    """Minimal detector interface expected by `StairPipeline`."""

    def detect(self, frame: Frame) -> DecodeResult:
        """Run inference on a BGR frame and decode the output."""

    def decode(self, raw: RawTensor) -> DecodeResult:
        """Decode an already computed raw tensor."""


class StairPipeline:
    """End-to-end per-frame stair processing.

    Responsibilities:
    - run the detector (or decode a precomputed tensor)
    - reduce the frame to its primary detection and optionally smooth it
    - let the arbiter decide on speech, and pulse haptics for the primary
    - fire-and-forget a cloud enrichment request

    Everything except the cloud call runs synchronously on the caller's thread.
    """

    def __init__(
        self,
        detector: Detector,
        mediator: FeedbackMediator,
        narration: NarrationEngine | None = None,
        cloud: CloudEnrichmentClient | None = None,
        smoother: DetectionSmoother | None = None,
        history: ObstacleHistory | None = None,
        demo: DemoDetector | None = None,
        clock: Callable[[], float] = time.monotonic,
        lateral: bool = True,
        continuous_narrator: bool = True,
    ) -> None:
        self.detector = detector
        self.mediator = mediator
        self.narration = narration or mediator.narration
        self.cloud = cloud
        self.smoother = smoother
        self.history = history or ObstacleHistory()
        self.demo = demo
        self.clock = clock
        self.lateral = lateral
        self.continuous_narrator = continuous_narrator
        self.frame_id = 0
        self.paused = False
        self.last_report: FrameReport | None = None
        self._last_primary: Detection | None = None
        self._last_hazard_at: float | None = None
        # Distance and lateral cues share one motor; they take turns when both apply.
        self._lateral_turn = False
        self._last_fps_at = time.perf_counter()
        self._fps = 0.0
        self._lock = threading.RLock()

    def _update_fps(self) -> None:
        now_perf = time.perf_counter()
        dt = now_perf - self._last_fps_at
        if dt > 0:
            instant_fps = 1.0 / dt
            alpha = 0.1
            self._fps = (
                instant_fps if self._fps == 0 else (self._fps * (1.0 - alpha) + instant_fps * alpha)
            )
        self._last_fps_at = now_perf

    def _pulse(self, det: Detection) -> None:
        direction = lateral_guidance(det) if self.lateral else None
        if direction is not None and self._lateral_turn:
            sent = self.mediator.pulse_lateral(direction)
        else:
            sent = self.mediator.pulse_for_distance(det.distance)
        if sent and direction is not None:
            self._lateral_turn = not self._lateral_turn

    def _paused_report(self) -> FrameReport:
        return FrameReport(
            frame_id=self.frame_id,
            timestamp=time.time(),
            detections=[],
            primary=None,
            hazard=False,
            confirmed=False,
            paused=True,
            fps=self._fps,
        )

    def _run(
        self,
        decode: Callable[[], DecodeResult],
        frame: Frame | None,
        profile: bool,
    ) -> FrameReport:
        timings: dict[str, float] = {}
        t_all0 = time.perf_counter() if profile else 0.0

        with self._lock:
            self.frame_id += 1
            self._update_fps()
            if self.paused:
                report = self._paused_report()
                self.last_report = report
                return report

            t_det0 = time.perf_counter() if profile else 0.0
            result = decode()
            if profile:
                timings["detect_ms"] = (time.perf_counter() - t_det0) * 1000.0

            detections = list(result.detections)
            if not detections and self.demo is not None:
                detections = self.demo.next()

            now = self.clock()
            primary = select_primary(detections)
            hazard = primary is not None
            if hazard:
                self._last_primary = primary
            confirmed = self.smoother.update(hazard) if self.smoother is not None else hazard
            # A smoothed hazard with an empty frame keeps talking about the last primary.
            speaking_about = primary if primary is not None else (self._last_primary if confirmed else None)

            seconds_since_hazard = (
                now - self._last_hazard_at if self._last_hazard_at is not None else None
            )
            t_alert0 = time.perf_counter() if profile else 0.0
            announcement = self.mediator.speak_if_due(
                confirmed,
                speaking_about,
                now=now,
                seconds_since_hazard=seconds_since_hazard,
                # Stairs in view but not yet confirmed must never sound like an all-clear.
                announce_clear=self.continuous_narrator and primary is None,
            )
            if confirmed and speaking_about is not None:
                self._last_hazard_at = now
                self._pulse(speaking_about)
                if announcement is not None:
                    self.history.record(speaking_about, now)
            if profile:
                timings["alert_ms"] = (time.perf_counter() - t_alert0) * 1000.0

            cloud_requested = False
            if self.cloud is not None and detections:
                cloud_requested = self.cloud.request(frame, detections) is not None

            report = FrameReport(
                frame_id=self.frame_id,
                timestamp=time.time(),
                detections=detections,
                primary=primary,
                hazard=hazard,
                confirmed=confirmed,
                max_confidence=result.max_confidence,
                rejected=result.rejected,
                announcement=announcement,
                cloud_requested=cloud_requested,
                fps=self._fps,
            )
            if profile:
                timings["pipeline_ms"] = (time.perf_counter() - t_all0) * 1000.0
                report.profile = timings
            self.last_report = report
            return report

    def process(self, frame: Frame) -> FrameReport:
        """Process one BGR frame end to end."""

        return self._run(lambda: self.detector.detect(frame), frame, profile=False)

    def process_with_profile(self, frame: Frame) -> FrameReport:
        """Like `process`, with stage durations (ms) in `report.profile`."""

        return self._run(lambda: self.detector.detect(frame), frame, profile=True)

    def process_tensor(self, raw: RawTensor, frame: Frame | None = None) -> FrameReport:
        """Process a raw model output directly, skipping inference."""

        return self._run(lambda: self.detector.decode(raw), frame, profile=False)

    def pause(self) -> None:
        """Emergency stop: silence everything and skip frames until resumed."""

        with self._lock:
            self.paused = True
            self.mediator.cancel_all()
            if self.smoother is not None:
                self.smoother.reset()
        logger.info("Detection paused")

    def resume(self) -> None:
        with self._lock:
            self.paused = False
            self.mediator.arbiter.reset()
            self._last_primary = None
            self._lateral_turn = False
        logger.info("Detection resumed")

    def replay_last(self) -> Phrase:
        """Re-announce the most recent obstacle (or that there is none)."""

        phrase = self.narration.replay_phrase(self.history.latest(), self.clock())
        self.mediator.announce(phrase, tone=GENERIC_TONE)
        return phrase

    def request_analysis(self, frame: Frame | None) -> bool:
        """User-initiated cloud analysis of the current scene."""

        if self.cloud is None:
            return False
        detections = self.last_report.detections if self.last_report is not None else []
        return self.cloud.request(frame, detections, force=True) is not None

    def close(self) -> None:
        if self.cloud is not None:
            self.cloud.close()
        self.mediator.close()


def pipeline_from_settings(
    settings: StairVisionSettings,
    detector: Detector | None = None,
    speech: SpeechOutput | None = None,
    haptics: HapticOutput | None = None,
    tones: ToneOutput | None = None,
    vision_model: VisionLanguageModel | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> StairPipeline:
    """Wire a `StairPipeline` from settings.

    Collaborators that are not injected are built from settings: the YOLO
    model from `model_path`, speech from `pyttsx3`, the cloud model from
    Gemini. Raises `ModelLoadError` when the stair model cannot be loaded.
    """

    if detector is None:
        detector = StairDetector(
            YoloStairModel(settings.model_path, settings.model_input_size),
            confidence=settings.confidence,
            input_size=settings.model_input_size,
            rotation=settings.camera_rotation,
        )
    if speech is None:
        speech = open_speech(settings.enable_audio)
    narration = NarrationEngine(
        make_selector(settings.phrase_policy, settings.phrase_seed),
        numeric=settings.numeric_distance,
    )
    arbiter = AlertArbiter(
        settings.hazard_interval_ms / 1000.0,
        settings.clear_interval_ms / 1000.0,
    )
    mediator = FeedbackMediator(
        speech,
        haptics if haptics is not None else LoggingHaptics(),
        tones if tones is not None else LoggingTones(),
        arbiter,
        narration,
        clock=clock,
        min_pulse_interval_s=settings.haptic_interval_ms / 1000.0,
        audio_enabled=settings.enable_audio,
        haptics_enabled=settings.enable_haptics,
    )

    cloud: CloudEnrichmentClient | None = None
    if settings.cloud_enabled:
        if vision_model is None:
            try:
                vision_model = GeminiVisionModel(
                    settings.cloud_model,
                    api_key=settings.cloud_api_key,
                    timeout_s=settings.cloud_timeout_s,
                )
            except ValueError:
                logger.warning("Cloud enrichment disabled: no Gemini API key configured")
        if vision_model is not None:
            cloud = CloudEnrichmentClient(
                vision_model,
                narration,
                mediator.deliver,
                cooldown_s=settings.cloud_interval_ms / 1000.0,
                timeout_s=settings.cloud_timeout_s,
                clock=clock,
            )

    smoother = (
        DetectionSmoother(settings.smoothing_window, settings.smoothing_min_hits)
        if settings.smoothing_enabled
        else None
    )
    return StairPipeline(
        detector,
        mediator,
        narration=narration,
        cloud=cloud,
        smoother=smoother,
        history=ObstacleHistory(settings.history_size),
        demo=DemoDetector() if settings.demo_mode else None,
        clock=clock,
        lateral=settings.enable_lateral_guidance,
        continuous_narrator=settings.continuous_narrator,
    )
