"""GeminiImageService and backend factory tests."""

from __future__ import annotations

import asyncio
import os
from types import SimpleNamespace

import pytest

from config.settings import AppConfig, load_config
from modules.pipelines import gemini
from modules.pipelines.factory import create_services
from modules.pipelines.img2img import ImageEditService
from modules.pipelines.text2img import Text2ImageService
from modules.state.errors import NoEditResultError, ProviderError
from modules.state.models import Image


def image_response(data=b"png-bytes", mime_type="image/png"):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type))
    text_part = SimpleNamespace(inline_data=None, text="Here you go")
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=[text_part, part]))]
    )


def text_only_response():
    part = SimpleNamespace(inline_data=None, text="I cannot do that.")
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


class DummyModel:
    def __init__(self, name: str, responses) -> None:
        self.name = name
        self.responses = list(responses)
        self.requests = []

    def generate_content(self, contents):
        self.requests.append(contents)
        return self.responses.pop(0)


class DummyGenAI:
    """Mimics the ``google.generativeai`` module surface the service uses."""

    def __init__(self, responses) -> None:
        self.responses = responses
        self.api_key = None
        self.model = None

    def configure(self, api_key: str) -> None:
        self.api_key = api_key

    def GenerativeModel(self, name: str) -> DummyModel:  # noqa: N802
        self.model = DummyModel(name, self.responses)
        return self.model


def build_service(responses, key="test-key"):
    config = AppConfig(backend="gemini", gemini_key=key)
    module = DummyGenAI(responses)
    return gemini.GeminiImageService(config, client_module=module), module


def test_generate_issues_one_request_per_image():
    service, module = build_service([image_response(b"a"), image_response(b"b"), image_response(b"c")])

    images = service.generate("A robot", 3)

    assert [image.data for image in images] == [b"a", b"b", b"c"]
    assert module.api_key == "test-key"
    assert module.model.name == AppConfig().gemini_image_model
    assert module.model.requests == ["A robot"] * 3


def test_generate_without_image_raises_provider_error():
    service, _ = build_service([text_only_response()])

    with pytest.raises(ProviderError):
        service.generate("A robot", 1)


def test_edit_sends_image_and_instruction():
    source = Image(data=b"jpeg-bytes", mime_type="image/jpeg")
    service, module = build_service([image_response(b"edited")])

    edited = service.edit(source, "Change the skateboard to blue.")

    assert edited == Image(data=b"edited", mime_type="image/png")
    image_part, instruction = module.model.requests[0]
    assert image_part == {"mime_type": "image/jpeg", "data": b"jpeg-bytes"}
    assert instruction == "Change the skateboard to blue."


def test_edit_without_image_is_distinguished():
    service, _ = build_service([text_only_response()])

    with pytest.raises(NoEditResultError):
        service.edit(Image(data=b"x"), "Make it blue.")


def test_base64_inline_payload_is_decoded():
    response = image_response(data="aGVsbG8=", mime_type="image/jpeg")

    assert gemini.first_inline_image(response) == Image(data=b"hello", mime_type="image/jpeg")


def test_missing_key_is_a_provider_error():
    service, _ = build_service([], key=None)

    with pytest.raises(ProviderError):
        service.generate("A robot", 1)


def test_factory_selects_backend():
    generator, editor = create_services(AppConfig(backend="gemini", gemini_key="k"))
    assert generator is editor
    assert isinstance(generator, gemini.GeminiImageService)

    generator, editor = create_services(AppConfig(backend="diffusion"))
    assert isinstance(generator, Text2ImageService)
    assert isinstance(editor, ImageEditService)

    with pytest.raises(ValueError):
        create_services(AppConfig(backend="unknown"))


@pytest.mark.integration
def test_gemini_real_call():
    """Generate one image against the real Gemini API."""
    config = load_config()
    if not (config.gemini_key or os.getenv("GEMINI_API_KEY")):
        pytest.skip("GEMINI_API_KEY not set; skipping real Gemini call.")

    service = gemini.GeminiImageService(config)
    images = asyncio.run(asyncio.to_thread(service.generate, "A robot holding a red skateboard.", 1))

    assert len(images) == 1
    assert images[0].data
