from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from stairvision.api.schemas.models import report_payload
from stairvision.core.config.settings import StairVisionSettings
from stairvision.core.pipeline import pipeline_from_settings
from stairvision.core.types import DecodeResult
from stairvision.core.video_sources.base import FileSource


class _EmptyDetector:
    """Stand-in detector for `--mock`: finds nothing, so demo detections take over."""

    def detect(self, frame):
        return DecodeResult(detections=[])

    def decode(self, raw):
        return DecodeResult(detections=[])


class _VideoClock:
    """Clock that advances with the video timeline rather than wall time."""

    def __init__(self, fps: float) -> None:
        self.fps = fps if fps > 0 else 30.0
        self.frame_index = 0

    def __call__(self) -> float:
        return self.frame_index / self.fps


def run(args):
    try:
        source = FileSource(args.input, loop=False, realtime=False)
    except RuntimeError:
        raise SystemExit(f"Cannot open video {args.input}") from None
    settings = StairVisionSettings(
        video_source="file",
        video_path=args.input,
        model_path=args.model,
        confidence=args.conf,
        enable_audio=args.speak,
        demo_mode=args.mock,
        smoothing_enabled=args.smoothing,
        cloud_enabled=False,
    )
    clock = _VideoClock(source.source_fps or 30.0)
    pipeline = pipeline_from_settings(
        settings,
        detector=_EmptyDetector() if args.mock else None,
        clock=clock,
    )
    outputs = []
    try:
        while True:
            frame = source.read()
            if frame is None:
                break
            clock.frame_index += 1
            report = pipeline.process(frame)
            outputs.append(report_payload(report))
            if args.max_frames and len(outputs) >= args.max_frames:
                break
    finally:
        source.close()
        pipeline.close()
    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(outputs, f, indent=2)
    announced = sum(1 for o in outputs if o["announcement"] is not None)
    print(f"Wrote {len(outputs)} frame reports ({announced} announcements) to {out_path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the stair pipeline on a video")
    parser.add_argument("--input", required=True, help="Path to video file")
    parser.add_argument("--output", required=True, help="Where to save JSON output")
    parser.add_argument("--model", default="stair_yolo_best_float32.tflite")
    parser.add_argument("--conf", type=float, default=0.6)
    parser.add_argument("--max-frames", type=int, default=0, help="Limit frames for quick tests")
    parser.add_argument(
        "--mock", action="store_true", help="Use scripted demo detections (no model needed)"
    )
    parser.add_argument("--smoothing", action="store_true", help="Enable k-of-n hazard smoothing")
    parser.add_argument("--speak", action="store_true", help="Speak announcements with pyttsx3")
    parser.add_argument("--log-level", default="WARNING")
    return parser


if __name__ == "__main__":
    parsed = build_parser().parse_args()
    logging.basicConfig(level=parsed.log_level.upper())
    run(parsed)
