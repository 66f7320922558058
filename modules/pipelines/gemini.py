"""Remote generation and editing through the Gemini image model."""

from __future__ import annotations

import base64
import binascii
import importlib
import logging
from typing import Any, List, Optional

from config.settings import AppConfig
from modules.state.errors import NoEditResultError, ProviderError
from modules.state.models import Image

logger = logging.getLogger(__name__)


def first_inline_image(response: Any) -> Optional[Image]:
    """Return the first inline image part of a ``generate_content`` response."""
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            data = getattr(inline, "data", None) if inline is not None else None
            if not data:
                continue
            mime_type = getattr(inline, "mime_type", None) or "image/png"
            if isinstance(data, str):
                # Some SDK versions hand back the payload base64-encoded.
                try:
                    data = base64.b64decode(data)
                except (binascii.Error, ValueError):
                    continue
            return Image(data=bytes(data), mime_type=mime_type)
    return None


class GeminiImageService:
    """Generate and edit images with ``google-generativeai``."""

    def __init__(self, config: AppConfig, client_module: Any = None) -> None:
        self.config = config
        self._genai = client_module
        self._model: Any = None

    def _load_model(self) -> Any:
        if self._model is not None:
            return self._model
        if not self.config.gemini_key:
            raise ProviderError("GEMINI_API_KEY is not set; the Gemini backend is unavailable.")
        if self._genai is None:
            try:
                self._genai = importlib.import_module("google.generativeai")
            except ImportError as exc:
                raise ProviderError(f"Unable to import google.generativeai: {exc}") from exc

        self._genai.configure(api_key=self.config.gemini_key)
        self._model = self._genai.GenerativeModel(self.config.gemini_image_model)
        logger.info("Using Gemini image model %s", self.config.gemini_image_model)
        return self._model

    def generate(self, prompt: str, count: int) -> List[Image]:
        """One request per image; the model returns a single image per call."""
        model = self._load_model()
        images: List[Image] = []
        for _ in range(count):
            response = model.generate_content(prompt)
            image = first_inline_image(response)
            if image is None:
                raise ProviderError("The model did not return an image for this prompt.")
            images.append(image)
        return images

    def edit(self, image: Image, instruction: str) -> Image:
        model = self._load_model()
        response = model.generate_content(
            [{"mime_type": image.mime_type, "data": image.data}, instruction]
        )
        edited = first_inline_image(response)
        if edited is None:
            raise NoEditResultError()
        return edited
