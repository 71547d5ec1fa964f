"""Raw YOLO output decoding.

The stair model emits a fixed `[5, N]` tensor (center x, center y, width, height,
confidence) per anchor, normalized to the square model input. Decoding keeps
anchors at or above the confidence threshold whose geometry is sane.

No non-max suppression or deduplication is performed: the model is single-class
and detections are expected to be sparse, so overlapping boxes of one stairway
may appear as separate entries. The aggregator reduces the frame to a single
primary detection, which absorbs this.
"""

from __future__ import annotations

import logging

import numpy as np

from stairvision.core.classify import DEFAULT_THRESHOLDS, ClassifierThresholds, build_detection
from stairvision.core.types import DecodeResult, Detection, RawTensor

logger = logging.getLogger(__name__)

NUM_CHANNELS = 5


def _as_channels(raw: RawTensor) -> np.ndarray:
    """Return the tensor as a float `[5, N]` array (drops a leading batch dim)."""

    arr = np.asarray(raw, dtype=np.float32)
    if arr.ndim == 3 and arr.shape[0] == 1:
        arr = arr[0]
    if arr.ndim != 2 or arr.shape[0] != NUM_CHANNELS:
        raise ValueError(f"expected a [5, N] tensor, got shape {tuple(np.shape(raw))}")
    return arr


def decode_tensor(
    raw: RawTensor,
    threshold: float,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
) -> DecodeResult:
    """Decode a raw inference tensor into classified detections.

    Args:
        raw: `[5, N]` (or `[1, 5, N]`) array of normalized cx, cy, w, h, conf.
        threshold: Confidence threshold in (0, 1].
        thresholds: Classifier constants used to type and bucket detections.

    Returns:
        A `DecodeResult` with detections in anchor order plus diagnostics. The
        maximum confidence is reported even when nothing passes the threshold.
    """

    if not 0.0 < threshold <= 1.0:
        raise ValueError("threshold must be in (0, 1]")

    data = _as_channels(raw)
    cx, cy, bw, bh, conf = data

    # NaN confidences never compare >= threshold and are ignored for the max.
    finite_conf = np.where(np.isnan(conf), 0.0, conf)
    max_conf = float(np.max(finite_conf, initial=0.0))

    keep = conf >= threshold
    above = int(np.count_nonzero(keep))
    if above == 0:
        return DecodeResult(detections=[], max_confidence=max_conf)

    # NaN geometry fails every comparison below and is rejected with the rest.
    valid = keep & (cx >= 0.0) & (cx <= 1.0) & (cy >= 0.0) & (cy <= 1.0) & (bw > 0.0) & (bh > 0.0)
    rejected = above - int(np.count_nonzero(valid))
    if rejected:
        logger.debug("Filtered %d invalid detections", rejected)

    detections: list[Detection] = [
        build_detection(cx[i], cy[i], bw[i], bh[i], conf[i], thresholds)
        for i in np.flatnonzero(valid)
    ]
    return DecodeResult(
        detections=detections,
        max_confidence=max_conf,
        above_threshold=above,
        rejected=rejected,
    )
