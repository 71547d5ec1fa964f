from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import AsyncGenerator
from pathlib import Path

import numpy as np

from stairvision.core.config.settings import StairVisionSettings
from stairvision.core.pipeline import StairPipeline, pipeline_from_settings
from stairvision.core.types import FrameReport, Phrase
from stairvision.core.video_sources.base import FileSource, VideoSource, WebcamSource

logger = logging.getLogger(__name__)


class StairEngine:
    """Runs the capture → process loop around a `StairPipeline`.

    - capture thread continuously reads frames and keeps only the newest
    - process thread runs `StairPipeline.process()` on that frame

    Speech, haptics and cloud calls are driven by the pipeline itself; the
    engine only keeps the latest report for the API.
    """

    def __init__(self, settings: StairVisionSettings, pipeline: StairPipeline | None = None) -> None:
        self.settings = settings
        self.pipeline = pipeline or pipeline_from_settings(settings)
        if settings.target_fps is not None:
            self._target_fps = float(settings.target_fps)
        else:
            # Files pace themselves; cap webcams to keep CPU reasonable.
            self._target_fps = 0.0 if settings.video_source == "file" else 15.0
        self._camera_fps = 0.0
        self._camera_alpha = 0.2
        self._last_captured_at: float | None = None
        self.source: VideoSource | None = None
        self.running = False
        self.frames_processed = 0
        self._capture_thread: threading.Thread | None = None
        self._process_thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._latest_report: FrameReport | None = None
        self._latest_processed_frame: np.ndarray | None = None
        self._capture_lock = threading.Lock()
        self._capture_event = threading.Event()
        self._latest_captured_frame: np.ndarray | None = None
        self.last_error: str | None = None

    def _make_source(self) -> VideoSource:
        """Instantiate the configured `VideoSource`."""

        if self.settings.video_source == "file" and self.settings.video_path:
            video_path = Path(self.settings.video_path)
            if not video_path.exists():
                raise RuntimeError(f"Video path not found: {video_path}")
            return FileSource(str(video_path))
        return WebcamSource(self.settings.webcam_index)

    def start(self) -> None:
        """Start background threads.

        Safe to call multiple times; subsequent calls while running are ignored.
        """

        if self.running:
            return
        try:
            self.source = self._make_source()
        except Exception:
            self.last_error = "Failed to initialize video source"
            logger.exception(self.last_error)
            return
        self.running = True
        self.last_error = None
        self._capture_event.clear()
        self._capture_thread = threading.Thread(target=self._capture_loop, name="capture", daemon=True)
        self._process_thread = threading.Thread(target=self._process_loop, name="process", daemon=True)
        self._capture_thread.start()
        self._process_thread.start()

    def stop(self) -> None:
        """Stop background threads, close the source and tear down the pipeline."""

        self.running = False
        self._capture_event.set()
        if self._capture_thread and self._capture_thread.is_alive():
            self._capture_thread.join(timeout=2)
        if self._process_thread and self._process_thread.is_alive():
            self._process_thread.join(timeout=2)
        if self.source:
            self.source.close()
            self.source = None
        self.pipeline.close()

    def _capture_loop(self) -> None:
        """Continuously read frames from the configured source."""

        logger.debug("Capture loop started")
        while self.running and self.source:
            try:
                frame = self.source.read()
            except Exception:
                self.last_error = "Frame capture failed"
                logger.exception(self.last_error)
                time.sleep(0.1)
                continue
            now = time.perf_counter()
            if frame is None:
                time.sleep(0.02)
                continue
            with self._lock:
                if self._last_captured_at is not None:
                    dt = now - self._last_captured_at
                    if dt > 0:
                        instant = 1.0 / dt
                        self._camera_fps = (
                            instant
                            if self._camera_fps == 0.0
                            else (
                                self._camera_fps * (1.0 - self._camera_alpha)
                                + instant * self._camera_alpha
                            )
                        )
                self._last_captured_at = now
            with self._capture_lock:
                self._latest_captured_frame = frame
            self._capture_event.set()

    def _process_loop(self) -> None:
        """Run the stair pipeline on the newest captured frame."""

        logger.debug("Process loop started")
        while self.running:
            if not self._capture_event.wait(timeout=0.5):
                continue
            with self._capture_lock:
                frame = self._latest_captured_frame
                self._latest_captured_frame = None
                self._capture_event.clear()
            if frame is None:
                continue

            start = time.perf_counter()
            try:
                report = self.pipeline.process(frame)
                self.last_error = None
            except Exception:
                self.last_error = "Pipeline processing failed"
                logger.exception(self.last_error)
                continue
            duration = time.perf_counter() - start
            with self._lock:
                self._latest_report = report
                self._latest_processed_frame = frame
                self.frames_processed += 1

            if self._target_fps > 0:
                desired_interval = max(0.0, (1.0 / self._target_fps) - duration)
                if desired_interval > 0:
                    time.sleep(desired_interval)

    def latest_report(self) -> FrameReport | None:
        with self._lock:
            return self._latest_report

    def latest_frame(self) -> np.ndarray | None:
        """Return the last frame the pipeline processed (used for cloud analysis)."""

        with self._lock:
            return self._latest_processed_frame

    def stream_fps(self) -> float:
        """Approximate input FPS based on capture timestamps (camera/file decode)."""

        with self._lock:
            return float(self._camera_fps)

    def pause(self) -> None:
        self.pipeline.pause()

    def resume(self) -> None:
        self.pipeline.resume()

    @property
    def paused(self) -> bool:
        return self.pipeline.paused

    def has_history(self) -> bool:
        return self.pipeline.history.latest() is not None

    def replay_last(self) -> Phrase:
        return self.pipeline.replay_last()

    def cloud_available(self) -> bool:
        return self.pipeline.cloud is not None

    def analyze_scene(self) -> bool:
        """Force a cloud analysis of the latest frame; False when busy."""

        return self.pipeline.request_analysis(self.latest_frame())

    def ask(self, question: str) -> bool:
        if self.pipeline.cloud is None:
            return False
        return self.pipeline.cloud.ask(self.latest_frame(), question) is not None

    def status(self) -> dict[str, object]:
        """Output channel and cloud status for `/stats`."""

        status: dict[str, object] = dict(self.pipeline.mediator.status())
        cloud = self.pipeline.cloud
        status["cloud_enabled"] = cloud is not None
        status["cloud_in_flight"] = bool(cloud.in_flight) if cloud is not None else False
        last = cloud.last_result if cloud is not None else None
        status["cloud_last_result"] = None if last is None else type(last).__name__
        status["history_size"] = len(self.pipeline.history)
        return status

    async def metadata_stream(self) -> AsyncGenerator[FrameReport, None]:
        """Yield per-frame reports for WebSocket streaming."""

        last_id = -1
        while True:
            report = self.latest_report()
            if report and report.frame_id != last_id:
                last_id = report.frame_id
                yield report
            await asyncio.sleep(0.02)
