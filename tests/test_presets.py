import pytest

from stairvision.core.config.presets import PRESETS, list_presets, preset_patch
from stairvision.core.config.settings import StairVisionSettings


def test_list_presets_shape():
    presets = list_presets()
    assert [p["id"] for p in presets] == ["strict", "balanced", "sensitive"]
    assert presets[0]["label"] == "Strict"
    assert presets[2]["settings"] == {"confidence": 0.3}


def test_preset_patch_returns_copy():
    patch = preset_patch("strict")
    patch["confidence"] = 0.1
    assert PRESETS["strict"]["confidence"] == 0.85


def test_unknown_preset():
    with pytest.raises(KeyError):
        preset_patch("paranoid")


@pytest.mark.parametrize("preset_id", sorted(PRESETS))
def test_presets_are_valid_settings(preset_id):
    StairVisionSettings(**preset_patch(preset_id))
