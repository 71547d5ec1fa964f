"""Camera and file frame sources.

The engine pulls frames through `VideoSource` so the stair pipeline never
touches OpenCV capture objects directly.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod

import cv2

from stairvision.core.types import Frame

logger = logging.getLogger(__name__)


class VideoSource(ABC):
    """Base interface for anything that can produce video frames."""

    @abstractmethod
    def read(self) -> Frame | None:
        """Return the next frame, or `None` when unavailable."""

        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release any underlying resources."""

        raise NotImplementedError


class OpenCVSource(VideoSource):
    """A `VideoSource` backed by `cv2.VideoCapture`."""

    def __init__(self, source: str | int) -> None:
        self.cap = cv2.VideoCapture(source)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {source}")

    def read(self) -> Frame | None:
        ok, frame = self.cap.read()
        if not ok:
            return None
        return frame

    def close(self) -> None:
        self.cap.release()


class WebcamSource(OpenCVSource):
    """Webcam capture that only ever hands out the newest frame.

    A reader thread drains the driver buffer so a slow pipeline reacts to what
    is in front of the user now, not to frames queued seconds ago.
    """

    def __init__(self, index: int = 0, width: int = 640, height: int = 480) -> None:
        super().__init__(index)
        try:
            self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except Exception:
            logger.debug("CAP_PROP_BUFFERSIZE not supported", exc_info=True)
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        logger.info("Opened camera index=%s", index)

        self._lock = threading.Lock()
        self._running = True
        self._latest_frame: Frame | None = None
        self._latest_seq = 0
        self._delivered_seq = 0
        self._reader_thread = threading.Thread(target=self._reader_loop, name="camera", daemon=True)
        self._reader_thread.start()

    def _reader_loop(self) -> None:
        while self._running:
            ok, frame = self.cap.read()
            if not ok:
                time.sleep(0.01)
                continue
            with self._lock:
                self._latest_frame = frame
                self._latest_seq += 1

    def read(self) -> Frame | None:
        with self._lock:
            frame = self._latest_frame
            seq = self._latest_seq
        # Don't resend a frame the pipeline has already seen.
        if frame is None or seq == self._delivered_seq:
            return None
        self._delivered_seq = seq
        return frame

    def close(self) -> None:
        self._running = False
        try:
            if self._reader_thread.is_alive():
                self._reader_thread.join(timeout=1)
        finally:
            self.cap.release()


class FileSource(OpenCVSource):
    """Video file played back at its native frame rate.

    With `loop=True` the file rewinds at EOF, which is handy for demos; offline
    tooling uses `loop=False, realtime=False` to decode as fast as possible.
    """

    def __init__(self, path: str, loop: bool = True, realtime: bool = True) -> None:
        self._path = path
        self.loop = loop
        self.realtime = realtime
        self._start_perf: float | None = None
        self._frame_index = 0
        super().__init__(path)
        fps = float(self.cap.get(cv2.CAP_PROP_FPS) or 0.0)
        self.source_fps: float | None = fps if fps > 0.0 else None

    def _pace(self) -> None:
        if not self.realtime or not self.source_fps or self._start_perf is None:
            return
        expected = self._frame_index / self.source_fps
        delay = expected - (time.perf_counter() - self._start_perf)
        if delay > 0:
            time.sleep(delay)

    def read(self) -> Frame | None:
        if self._start_perf is None:
            self._start_perf = time.perf_counter()
            self._frame_index = 0

        ok, frame = self.cap.read()
        if not ok and self.loop and self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0):
            logger.debug("Rewinding %s", self._path)
            self._start_perf = time.perf_counter()
            self._frame_index = 0
            ok, frame = self.cap.read()
        if not ok:
            return None
        self._frame_index += 1
        self._pace()
        return frame
