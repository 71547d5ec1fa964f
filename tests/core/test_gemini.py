from types import SimpleNamespace

import pytest

from stairvision.core.cloud import gemini as gemini_mod
from stairvision.core.errors import CloudCallError


class _FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def generate_content(self, model, contents, config):
        self.requests.append((model, contents, config))
        if self.error is not None:
            raise self.error
        return self.response


def _install_client(monkeypatch, models):
    created = {}

    class FakeClient:
        def __init__(self, api_key, http_options=None):
            created["api_key"] = api_key
            created["http_options"] = http_options
            self.models = models

    monkeypatch.setattr(gemini_mod.genai, "Client", FakeClient)
    return created


def test_missing_key_raises(monkeypatch):
    monkeypatch.delenv(gemini_mod.API_KEY_ENV, raising=False)
    with pytest.raises(ValueError):
        gemini_mod.GeminiVisionModel()


def test_generate_sends_image_and_prompt(monkeypatch):
    models = _FakeModels(response=SimpleNamespace(text="  Stairs ahead.  "))
    monkeypatch.setenv(gemini_mod.API_KEY_ENV, "env-key")
    created = _install_client(monkeypatch, models)

    model = gemini_mod.GeminiVisionModel(timeout_s=2.5)
    text = model.generate(b"\xff\xd8jpeg", "Describe the stairs")

    assert text == "Stairs ahead."
    assert created["api_key"] == "env-key"
    assert created["http_options"].timeout == 2500
    name, contents, _ = models.requests[0]
    assert name == gemini_mod.DEFAULT_MODEL
    assert len(contents) == 2
    assert contents[-1] == "Describe the stairs"


def test_generate_without_image(monkeypatch):
    models = _FakeModels(response=SimpleNamespace(text="Clear hallway."))
    _install_client(monkeypatch, models)

    model = gemini_mod.GeminiVisionModel(api_key="explicit")
    assert model.generate(None, "What is ahead?") == "Clear hallway."
    assert models.requests[0][1] == ["What is ahead?"]


def test_transport_error_is_wrapped(monkeypatch):
    _install_client(monkeypatch, _FakeModels(error=RuntimeError("503 unavailable")))
    model = gemini_mod.GeminiVisionModel(api_key="k")

    with pytest.raises(CloudCallError) as excinfo:
        model.generate(None, "prompt")
    assert excinfo.value.reason == "transport"


def test_empty_answer(monkeypatch):
    _install_client(monkeypatch, _FakeModels(response=SimpleNamespace(text=None)))
    model = gemini_mod.GeminiVisionModel(api_key="k")

    with pytest.raises(CloudCallError) as excinfo:
        model.generate(None, "prompt")
    assert excinfo.value.reason == "empty"
