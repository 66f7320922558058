"""Callback implementations for the Gradio interface."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from modules.services.controller import OperationStatus, SessionController
from modules.state.errors import SessionError
from modules.state.models import Image
from modules.utils.image_utils import decode_image, generate_thumbnail

READY_MESSAGE = "Enter a prompt below to generate an image. Click a generated image to edit it."
NO_SELECTION_MESSAGE = "Click a generated image to edit it."


def _gallery(images: Sequence[Image]) -> List[Any]:
    return [decode_image(image) for image in images]


def _history_gallery(images: Sequence[Image]) -> List[Any]:
    return [generate_thumbnail(image) for image in images]


def _normalize_count(value: Any) -> Any:
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


def _error_text(status: OperationStatus) -> str:
    return f"Error: {status.reason}"


def build_callbacks(controller: SessionController) -> dict[str, Any]:
    """Return a dictionary of Gradio callback functions bound to ``controller``."""

    def _views() -> tuple[List[Any], List[Any]]:
        session = controller.session
        return _gallery(session.current_results), _history_gallery(session.history)

    def _selected_preview() -> Optional[Any]:
        context = controller.edit_context
        if context is None:
            return None
        return decode_image(controller.session.current_results[context.index])

    async def on_generate(prompt: str, count: Any) -> tuple[List[Any], List[Any], str]:
        status = await controller.generate(prompt or "", _normalize_count(count))
        results, history = _views()
        if status.failed:
            return results, history, _error_text(status)
        return results, history, f"Generated {len(results)} image(s). {NO_SELECTION_MESSAGE}"

    def on_select(index: Any) -> tuple[Optional[Any], str, str]:
        # Gallery selections report either an int or a (row, col) pair.
        if isinstance(index, (list, tuple)):
            index = index[0]
        try:
            context = controller.select_for_edit(int(index))
        except (SessionError, TypeError, ValueError) as exc:
            return None, "", f"Error: {exc}"
        return _selected_preview(), "", f"Editing image {context.index + 1}. Describe your changes."

    async def on_submit_edit(
        instruction: str,
    ) -> tuple[List[Any], List[Any], Optional[Any], str, str]:
        status = await controller.submit_edit(instruction or "")
        results, history = _views()
        if status.failed:
            # Provider failures drop the selection; validation failures keep it.
            return results, history, _selected_preview(), instruction, _error_text(status)
        return results, history, None, "", "Edit applied."

    def on_cancel_edit() -> tuple[None, str, str]:
        controller.cancel_edit()
        return None, "", NO_SELECTION_MESSAGE

    async def on_save() -> str:
        status = await controller.save()
        if status.failed:
            return "Error: Failed to save session."
        return "Session saved successfully!"

    async def on_load() -> tuple[str, Any, List[Any], List[Any], None, str]:
        status = await controller.load()
        session = controller.session
        results, history = _views()
        if status.failed:
            message = (
                "No saved session found."
                if status.error_kind == "not_found"
                else "Error: Failed to load session."
            )
            return session.prompt, session.requested_count, results, history, None, message
        return (
            session.prompt,
            session.requested_count,
            results,
            history,
            None,
            "Session loaded successfully!",
        )

    callbacks: Dict[str, Any] = {
        "on_generate": on_generate,
        "on_select": on_select,
        "on_submit_edit": on_submit_edit,
        "on_cancel_edit": on_cancel_edit,
        "on_save": on_save,
        "on_load": on_load,
    }
    return callbacks
