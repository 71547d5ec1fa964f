from __future__ import annotations

from typing import Any


# Detection sensitivity presets. Only the confidence threshold differs; a lower
# threshold finds more stairs at the cost of more false alarms.


PRESETS: dict[str, dict[str, Any]] = {
    # Few false alarms; may miss partially visible stairs.
    "strict": {"confidence": 0.85},
    "balanced": {"confidence": 0.6},
    # Catches faint detections; expect occasional false alerts.
    "sensitive": {"confidence": 0.3},
}


PRESET_LABELS: dict[str, str] = {
    "strict": "Strict",
    "balanced": "Balanced",
    "sensitive": "Sensitive",
}


def list_presets() -> list[dict[str, Any]]:
    return [
        {
            "id": preset_id,
            "label": PRESET_LABELS.get(preset_id, preset_id),
            "settings": PRESETS[preset_id],
        }
        for preset_id in PRESETS.keys()
    ]


def preset_patch(preset_id: str) -> dict[str, Any]:
    if preset_id not in PRESETS:
        raise KeyError(preset_id)
    return dict(PRESETS[preset_id])
