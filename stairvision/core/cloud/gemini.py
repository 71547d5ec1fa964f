"""Gemini vision-language backend (google-genai SDK)."""

from __future__ import annotations

import logging
import os

from google import genai
from google.genai.types import GenerateContentConfig, HttpOptions, Part

from stairvision.core.errors import CloudCallError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"
API_KEY_ENV = "GEMINI_API_KEY"


class GeminiVisionModel:
    """Synchronous `generate(image, prompt) -> text` on top of `genai.Client`."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        timeout_s: float = 15.0,
        temperature: float = 0.4,
        max_output_tokens: int = 256,
    ) -> None:
        key = api_key or os.environ.get(API_KEY_ENV)
        if not key:
            raise ValueError(f"{API_KEY_ENV} not set and no API key configured")
        self.model = model
        self.client = genai.Client(
            api_key=key,
            http_options=HttpOptions(timeout=int(timeout_s * 1000)),
        )
        self.config = GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        logger.info("Gemini vision model ready: %s", model)

    def generate(self, image_jpeg: bytes | None, prompt: str) -> str:
        contents: list = []
        if image_jpeg:
            contents.append(Part.from_bytes(data=image_jpeg, mime_type="image/jpeg"))
        contents.append(prompt)
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=contents,
                config=self.config,
            )
        except Exception as exc:
            raise CloudCallError("transport", f"Gemini request failed: {exc}") from exc
        text = getattr(response, "text", None)
        if not text or not text.strip():
            raise CloudCallError("empty", "Gemini returned no text")
        return text.strip()
