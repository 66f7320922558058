"""Instruction-guided image editing pipeline service."""

from __future__ import annotations

from diffusers import StableDiffusionInstructPix2PixPipeline

from config.settings import AppConfig
from modules.pipelines.diffusion_base import DiffusionService
from modules.state.errors import NoEditResultError
from modules.state.models import Image
from modules.utils.image_utils import decode_image, encode_image


class ImageEditService(DiffusionService):
    """Applies a text instruction to one image with InstructPix2Pix."""

    model_key = "edit_model_id"

    def __init__(
        self,
        config: AppConfig,
        guidance_scale: float = 7.5,
        image_guidance_scale: float = 1.5,
        steps: int = 20,
    ) -> None:
        super().__init__(config)
        self.guidance_scale = guidance_scale
        self.image_guidance_scale = image_guidance_scale
        self.steps = steps

    def load_pipeline(self) -> StableDiffusionInstructPix2PixPipeline:
        return self._load(StableDiffusionInstructPix2PixPipeline)

    def edit(self, image: Image, instruction: str) -> Image:
        """Apply ``instruction`` to ``image`` and return the edited image."""
        pipeline = self.load_pipeline()
        result = pipeline(
            prompt=instruction,
            image=decode_image(image),
            guidance_scale=self.guidance_scale,
            image_guidance_scale=self.image_guidance_scale,
            num_inference_steps=self.steps,
        )
        images = list(getattr(result, "images", []))
        if not images:
            raise NoEditResultError()
        return encode_image(images[0], self.config.output_mime_type)
