"""ImageEditService unit tests."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import torch
from PIL import Image as PILImage

from config.settings import AppConfig
from modules.pipelines import img2img
from modules.state.errors import NoEditResultError
from modules.utils.image_utils import decode_image, encode_image


class DummyPix2PixPipeline:
    """Stand-in for StableDiffusionInstructPix2PixPipeline."""

    latest: "DummyPix2PixPipeline | None" = None
    produce_images = True

    def __init__(self) -> None:
        self.model_id = ""
        self.kwargs = {}
        self.device = None
        self.called_with = None
        self.xformers_enabled = False

    @classmethod
    def from_pretrained(cls, model_id: str, **kwargs):
        instance = cls()
        instance.model_id = model_id
        instance.kwargs = kwargs
        cls.latest = instance
        return instance

    def to(self, device: str):
        self.device = device
        return self

    def enable_xformers_memory_efficient_attention(self):
        raise RuntimeError("xformers missing")

    def __call__(self, **kwargs):
        self.called_with = kwargs
        if not self.produce_images:
            return SimpleNamespace(images=[])
        return SimpleNamespace(images=[PILImage.new("RGB", (8, 8), (0, 0, 255))])


class DecliningPipeline(DummyPix2PixPipeline):
    produce_images = False


@pytest.fixture(autouse=True)
def force_cpu(monkeypatch):
    monkeypatch.setattr(torch.cuda, "is_available", lambda: False)
    yield


def source_image():
    return encode_image(PILImage.new("RGB", (8, 8), (255, 0, 0)), "image/jpeg")


def test_edit_passes_instruction_and_decoded_image(monkeypatch, tmp_path):
    monkeypatch.setattr(img2img, "StableDiffusionInstructPix2PixPipeline", DummyPix2PixPipeline)

    config = AppConfig(model_dir=tmp_path)
    service = img2img.ImageEditService(config, steps=3)

    edited = service.edit(source_image(), "Change the skateboard to blue.")

    pipeline = DummyPix2PixPipeline.latest
    assert pipeline is not None
    assert pipeline.model_id == config.edit_model_id
    assert pipeline.kwargs["torch_dtype"] == torch.float32
    assert pipeline.called_with["prompt"] == "Change the skateboard to blue."
    assert pipeline.called_with["num_inference_steps"] == 3
    assert pipeline.called_with["image"].size == (8, 8)
    assert edited.mime_type == "image/jpeg"
    assert decode_image(edited).getpixel((4, 4))[2] > 200


def test_pipeline_is_loaded_once(monkeypatch, tmp_path):
    monkeypatch.setattr(img2img, "StableDiffusionInstructPix2PixPipeline", DummyPix2PixPipeline)
    config = AppConfig(model_dir=tmp_path)
    config.metadata["edit_model_id"] = "local/pix2pix"
    service = img2img.ImageEditService(config)

    first = service.load_pipeline()
    second = service.load_pipeline()

    assert first is second
    assert first.model_id == "local/pix2pix"


def test_edit_without_output_raises_no_edit_result(monkeypatch, tmp_path):
    monkeypatch.setattr(img2img, "StableDiffusionInstructPix2PixPipeline", DecliningPipeline)

    service = img2img.ImageEditService(AppConfig(model_dir=tmp_path))

    with pytest.raises(NoEditResultError):
        service.edit(source_image(), "Make it blue.")
