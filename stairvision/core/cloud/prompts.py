"""Structured detection summaries and vision-language prompts."""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from stairvision.core.classify import estimate_step_count, first_step_range, infer_handrail_side
from stairvision.core.types import Detection, DistanceBucket, Frame, HandrailSide, StairType

CLOUD_IMAGE_SIZE = 512
CLOUD_JPEG_QUALITY = 85

_HANDRAIL_TEXT = {
    HandrailSide.RIGHT: "Handrail likely on the right side",
    HandrailSide.LEFT: "Handrail likely on the left side",
    HandrailSide.BOTH: "Handrails may be available on both sides",
}


@dataclass(frozen=True)
class DetectionSummary:
    """What the cloud model is told about the primary detection."""

    detection: Detection
    step_count: str
    handrail_side: HandrailSide

    @property
    def stair_type(self) -> StairType:
        return self.detection.stair_type

    @property
    def distance(self) -> DistanceBucket:
        return self.detection.distance

    @property
    def first_step(self) -> str:
        return first_step_range(self.detection.distance)

    @property
    def handrail_text(self) -> str:
        return _HANDRAIL_TEXT[self.handrail_side]


def build_summary(detection: Detection) -> DetectionSummary:
    return DetectionSummary(
        detection=detection,
        step_count=estimate_step_count(detection.h),
        handrail_side=infer_handrail_side(detection.x),
    )


def encode_frame(
    frame: Frame | None, size: int = CLOUD_IMAGE_SIZE, quality: int = CLOUD_JPEG_QUALITY
) -> bytes | None:
    """Downsample a BGR frame to `size` x `size` and JPEG-encode it."""

    if frame is None:
        return None
    img = np.asarray(frame)
    if img.size == 0:
        return None
    if img.dtype != np.uint8:
        # Normalized float frames from the model input path.
        img = np.clip(img * 255.0, 0, 255).astype(np.uint8)
    resized = cv2.resize(img, (size, size), interpolation=cv2.INTER_AREA)
    ok, jpg = cv2.imencode(".jpg", resized, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        return None
    return jpg.tobytes()


def scene_prompt(summary: DetectionSummary | None) -> str:
    """Prompt asking for guidance about the current scene."""

    if summary is None:
        return (
            "You are assisting a visually impaired person using a stair detection app.\n"
            "The AI did not detect any stairs in this image.\n\n"
            "Analyze and describe:\n"
            "1. What is visible in the scene (hallway, room, outdoor, etc.)\n"
            "2. Any potential obstacles or hazards for mobility\n"
            "3. Brief navigation guidance (safe to proceed, turn around, etc.)\n\n"
            "Keep response encouraging, clear, and under 3 sentences.\n"
            "Focus on safety and mobility."
        )
    det = summary.detection
    return (
        "You are assisting a visually impaired person using a stair detection app.\n\n"
        "AI Detection Results:\n"
        f"- Type: {det.type_description}\n"
        f"- Distance: {det.distance_description}\n"
        f"- First step: {summary.first_step}\n"
        f"- Estimated steps: {summary.step_count}\n"
        f"- Position: {summary.handrail_text}\n\n"
        "Provide intelligent guidance including:\n"
        "1. Confirm the stair detection with type (ascending/descending)\n"
        "2. Describe condition (well-maintained, worn out, narrow, wide)\n"
        "3. Mention lighting (well-lit, dim, shadowy)\n"
        "4. Specify handrail location if visible (left, right, both, none)\n"
        "5. Any safety concerns (wet floor, obstacles, uneven steps)\n"
        "6. Brief navigation advice (approach slowly, use handrail, etc.)\n\n"
        "Response requirements:\n"
        "- Use conversational, encouraging tone\n"
        "- Be specific and actionable\n"
        "- Keep under 4 sentences\n"
        "- Focus on most helpful navigation tips\n"
        f'- Mention step count: "{summary.step_count} steps"'
    )


def question_prompt(question: str) -> str:
    return (
        "You are an AI assistant helping a visually impaired person navigate safely.\n"
        f'The user asks: "{question}"\n\n'
        "Analyze the image and provide:\n"
        "1. A clear, direct answer to their question\n"
        "2. Any relevant safety information\n"
        "3. Specific guidance about what you see\n\n"
        "Response requirements:\n"
        "- Be conversational and encouraging\n"
        "- Focus on actionable information\n"
        "- Mention stairs, handrails, obstacles, lighting\n"
        "- Keep response under 3-4 sentences\n"
        "- Be specific about locations (left, right, ahead)"
    )
