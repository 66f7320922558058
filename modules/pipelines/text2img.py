"""Text-to-image pipeline service implementation."""

from __future__ import annotations

from typing import List

from diffusers import StableDiffusionXLPipeline

from config.settings import AppConfig
from modules.pipelines.diffusion_base import DiffusionService
from modules.state.errors import ProviderError
from modules.state.models import Image
from modules.utils.image_utils import encode_image


class Text2ImageService(DiffusionService):
    """Produces a batch of images per prompt with an SDXL checkpoint."""

    model_key = "text2img_model_id"

    def __init__(
        self,
        config: AppConfig,
        guidance_scale: float = 0.0,
        steps: int = 4,
        height: int = 512,
        width: int = 512,
    ) -> None:
        super().__init__(config)
        self.guidance_scale = guidance_scale
        self.steps = steps
        self.height = height
        self.width = width

    def load_pipeline(self) -> StableDiffusionXLPipeline:
        return self._load(StableDiffusionXLPipeline)

    def generate(self, prompt: str, count: int) -> List[Image]:
        """Generate ``count`` images for the prompt."""
        pipeline = self.load_pipeline()
        result = pipeline(
            prompt=prompt,
            num_images_per_prompt=count,
            guidance_scale=self.guidance_scale,
            num_inference_steps=self.steps,
            height=self.height,
            width=self.width,
        )

        images = list(getattr(result, "images", []))
        if not images:
            raise ProviderError("The model did not return any images.")
        return [encode_image(image, self.config.output_mime_type) for image in images]
