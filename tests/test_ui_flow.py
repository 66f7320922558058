"""Gradio UI callback tests."""

from __future__ import annotations

import asyncio
from typing import Optional

from PIL import Image as PILImage

from modules.services.controller import SessionController
from modules.services.session_store import JsonSessionStore
from modules.state.models import Image
from modules.ui import callbacks
from modules.utils.image_utils import encode_image


def solid_image(color: tuple[int, int, int]) -> Image:
    return encode_image(PILImage.new("RGB", (16, 16), color), "image/jpeg")


class DummyGenerator:
    """Stub generation service producing small solid-color JPEGs."""

    def __init__(self) -> None:
        self.should_fail = False
        self.last_request: Optional[tuple[str, int]] = None

    def generate(self, prompt: str, count: int) -> list[Image]:
        if self.should_fail:
            raise RuntimeError("generation backend offline")
        self.last_request = (prompt, count)
        return [solid_image((40 * i, 10, 10)) for i in range(count)]


class DummyEditor:
    """Stub edit service."""

    def __init__(self) -> None:
        self.decline = False
        self.last_instruction: Optional[str] = None

    def edit(self, image: Image, instruction: str) -> Optional[Image]:
        self.last_instruction = instruction
        if self.decline:
            return None
        return solid_image((0, 0, 255))


def build_callbacks(tmp_path, generator=None, editor=None):
    controller = SessionController(
        generator or DummyGenerator(),
        editor or DummyEditor(),
        JsonSessionStore(tmp_path),
        allowed_counts=(1, 3),
    )
    return controller, callbacks.build_callbacks(controller)


def run(coro):
    return asyncio.run(coro)


def test_on_generate_fills_results_and_history(tmp_path):
    generator = DummyGenerator()
    _, cb = build_callbacks(tmp_path, generator=generator)

    results, history, message = run(cb["on_generate"]("A robot", "3"))

    assert len(results) == 3
    assert len(history) == 3
    assert "Generated 3 image(s)" in message
    assert generator.last_request == ("A robot", 3)


def test_on_generate_requires_prompt(tmp_path):
    _, cb = build_callbacks(tmp_path)

    results, history, message = run(cb["on_generate"]("", 1))

    assert results == []
    assert history == []
    assert message == "Error: Please enter a prompt."


def test_on_generate_handles_exception(tmp_path):
    generator = DummyGenerator()
    _, cb = build_callbacks(tmp_path, generator=generator)
    run(cb["on_generate"]("A robot", 1))

    generator.should_fail = True
    results, history, message = run(cb["on_generate"]("A robot", 1))

    assert results == []
    assert len(history) == 1
    assert message == "Error: generation backend offline"


def test_select_and_edit_flow(tmp_path):
    editor = DummyEditor()
    controller, cb = build_callbacks(tmp_path, editor=editor)
    run(cb["on_generate"]("A robot holding a red skateboard.", 1))

    preview, instruction, message = cb["on_select"](0)
    assert preview is not None
    assert instruction == ""
    assert "Editing image 1" in message

    results, history, preview, instruction, message = run(
        cb["on_submit_edit"]("Change the skateboard to blue.")
    )

    assert message == "Edit applied."
    assert preview is None
    assert len(results) == 1
    assert len(history) == 2
    assert editor.last_instruction == "Change the skateboard to blue."
    assert controller.session.history[0] == controller.session.current_results[0]


def test_declined_edit_reports_reason(tmp_path):
    editor = DummyEditor()
    editor.decline = True
    controller, cb = build_callbacks(tmp_path, editor=editor)
    run(cb["on_generate"]("A robot", 1))
    before = controller.session
    cb["on_select"](0)

    _, _, preview, _, message = run(cb["on_submit_edit"]("Make it blue."))

    assert preview is None
    assert message.startswith("Error: The model could not edit the image")
    assert controller.session == before


def test_empty_instruction_keeps_selection(tmp_path):
    _, cb = build_callbacks(tmp_path)
    run(cb["on_generate"]("A robot", 1))
    cb["on_select"](0)

    _, _, preview, _, message = run(cb["on_submit_edit"](""))

    assert preview is not None
    assert "Please enter a description" in message


def test_on_select_out_of_range(tmp_path):
    _, cb = build_callbacks(tmp_path)

    preview, _, message = cb["on_select"](5)

    assert preview is None
    assert message.startswith("Error:")


def test_on_cancel_edit_clears_selection(tmp_path):
    controller, cb = build_callbacks(tmp_path)
    run(cb["on_generate"]("A robot", 1))
    cb["on_select"]([0, 0])

    preview, instruction, _ = cb["on_cancel_edit"]()

    assert preview is None
    assert instruction == ""
    assert controller.edit_context is None


def test_save_and_load_messages(tmp_path):
    _, cb = build_callbacks(tmp_path)

    load_result = run(cb["on_load"]())
    # the main status line is not among the load outputs
    assert len(load_result) == 6
    assert load_result[5] == "No saved session found."

    run(cb["on_generate"]("A robot", 3))
    assert run(cb["on_save"]()) == "Session saved successfully!"

    _, fresh_cb = build_callbacks(tmp_path)
    prompt, count, results, history, preview, message = run(fresh_cb["on_load"]())

    assert message == "Session loaded successfully!"
    assert prompt == "A robot"
    assert count == 3
    assert len(results) == 3
    assert len(history) == 3
    assert preview is None


def test_load_reports_corrupt_snapshot(tmp_path):
    store = JsonSessionStore(tmp_path)
    store.path.write_text("not json", encoding="utf-8")
    _, cb = build_callbacks(tmp_path)

    result = run(cb["on_load"]())

    assert result[5] == "Error: Failed to load session."
