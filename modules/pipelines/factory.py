"""Backend selection for the generation and edit capabilities."""

from __future__ import annotations

from typing import Tuple

from config.settings import AppConfig
from modules.state.machine import EditCapability, GenerationCapability

BACKENDS = ("diffusion", "gemini")


def create_services(config: AppConfig) -> Tuple[GenerationCapability, EditCapability]:
    """Return ``(generator, editor)`` for the configured backend."""
    backend = (config.backend or "diffusion").lower()
    if backend == "gemini":
        from modules.pipelines.gemini import GeminiImageService

        service = GeminiImageService(config)
        return service, service
    if backend == "diffusion":
        from modules.pipelines.img2img import ImageEditService
        from modules.pipelines.text2img import Text2ImageService

        return Text2ImageService(config), ImageEditService(config)
    raise ValueError(f"Unknown backend '{config.backend}'; expected one of {', '.join(BACKENDS)}")
