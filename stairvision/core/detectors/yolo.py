"""Ultralytics YOLO stair model integration.

The stair model is used as an opaque function: a normalized RGB image goes in,
the raw `[5, N]` head output comes out and is decoded by
`stairvision.core.detectors.decoder`. Ultralytics' `AutoBackend` loads `.pt`,
`.onnx` and `.tflite` exports alike. Torch is imported lazily.
"""

from __future__ import annotations

import importlib
import logging
import time
from contextlib import nullcontext
from typing import Any, Protocol

import cv2
import numpy as np
from ultralytics.nn.autobackend import AutoBackend

from stairvision.core.classify import DEFAULT_THRESHOLDS, ClassifierThresholds
from stairvision.core.detectors.decoder import decode_tensor
from stairvision.core.errors import ModelLoadError
from stairvision.core.types import DecodeResult, Frame, RawTensor

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = "stair_yolo_best_float32.tflite"
DEFAULT_INPUT_SIZE = 640

_ROTATIONS = {
    0: None,
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


class InferenceModel(Protocol):
    """Minimal model interface expected by `StairDetector`."""

    def __call__(self, image: np.ndarray) -> RawTensor:
        """Map an `[S, S, 3]` RGB float image in [0, 1] to a `[5, N]` tensor."""


def preprocess_frame(frame: Frame, input_size: int, rotation: int = 0) -> np.ndarray:
    """Resize, rotate and normalize a BGR frame into the model's RGB input."""

    resized = cv2.resize(frame, (input_size, input_size), interpolation=cv2.INTER_LINEAR)
    rotate_code = _ROTATIONS.get(int(rotation) % 360)
    if rotate_code is not None:
        resized = cv2.rotate(resized, rotate_code)
    rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)
    return rgb.astype(np.float32) / 255.0


class YoloStairModel:
    """Raw-output wrapper around an Ultralytics `AutoBackend`.

    `AutoBackend` returns boxes in input pixels; they are rescaled to [0, 1] so
    the decoder always sees normalized geometry.
    """

    def __init__(self, model_path: str = DEFAULT_MODEL_PATH, input_size: int = DEFAULT_INPUT_SIZE):
        self.model_path = model_path
        self.input_size = int(input_size)
        try:
            self.backend = AutoBackend(model_path, verbose=False)
        except Exception as exc:
            raise ModelLoadError(f"Failed to load stair model: {model_path}") from exc
        self._torch: Any | None = None
        logger.info("Stair model loaded: %s (input %dpx)", model_path, self.input_size)

    def _torch_module(self) -> Any:
        if self._torch is None:
            self._torch = importlib.import_module("torch")
        return self._torch

    def __call__(self, image: np.ndarray) -> RawTensor:
        torch = self._torch_module()
        # HWC -> NCHW
        batch = np.ascontiguousarray(image.transpose(2, 0, 1)[None], dtype=np.float32)
        infer_ctx = torch.inference_mode() if hasattr(torch, "inference_mode") else nullcontext()
        with infer_ctx:
            out = self.backend(torch.from_numpy(batch))
        if isinstance(out, (list, tuple)):
            out = out[0]
        if hasattr(out, "cpu"):
            out = out.cpu()
        arr = np.array(out.numpy() if hasattr(out, "numpy") else out, dtype=np.float32)
        if arr.ndim == 3:
            arr = arr[0]
        arr[:4] /= float(self.input_size)
        return arr


class StairDetector:
    """Runs the stair model and decodes its output for one frame at a time."""

    def __init__(
        self,
        model: InferenceModel,
        confidence: float = 0.6,
        input_size: int = DEFAULT_INPUT_SIZE,
        rotation: int = 0,
        thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
    ) -> None:
        self.model = model
        self.confidence = float(confidence)
        self.input_size = int(input_size)
        self.rotation = int(rotation)
        self.thresholds = thresholds

    def decode(self, raw: RawTensor) -> DecodeResult:
        """Decode an already computed raw tensor with the current threshold."""

        return decode_tensor(raw, self.confidence, self.thresholds)

    def detect(self, frame: Frame) -> DecodeResult:
        """Preprocess a BGR frame, run inference and decode the output."""

        image = preprocess_frame(frame, self.input_size, self.rotation)
        t0 = time.perf_counter()
        raw = self.model(image)
        infer_ms = (time.perf_counter() - t0) * 1000.0
        result = self.decode(raw)
        logger.debug(
            "Inference: %.0fms | Max conf: %.3f | Detections: %d (threshold: %.2f)",
            infer_ms,
            result.max_confidence,
            len(result.detections),
            self.confidence,
        )
        return result
