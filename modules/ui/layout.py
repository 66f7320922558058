"""Gradio layout composition for the generate / edit / history workflow."""

from __future__ import annotations

from typing import Any, Optional

import gradio as gr

from config.settings import AppConfig
from modules.pipelines.factory import create_services
from modules.services.controller import SessionController
from modules.services.session_store import JsonSessionStore
from modules.ui.callbacks import NO_SELECTION_MESSAGE, READY_MESSAGE, build_callbacks

_COUNT_LABELS = {1: "One", 3: "Three"}


def build_controller(config: AppConfig) -> SessionController:
    """Wire the configured backend and the session store into a controller."""
    generator, editor = create_services(config)
    store = JsonSessionStore(
        config.store_dir,
        key=config.session_key,
        allowed_counts=config.allowed_counts,
    )
    return SessionController(generator, editor, store, allowed_counts=config.allowed_counts)


def build_app(config: AppConfig, controller: Optional[SessionController] = None) -> Any:
    """Compose and return the Gradio application."""
    controller = controller or build_controller(config)
    callbacks_map = build_callbacks(controller)
    count_choices = [(_COUNT_LABELS.get(count, str(count)), count) for count in config.allowed_counts]

    with gr.Blocks(title="IMA-GEN: Image Generation") as demo:
        gr.Markdown("## IMA-GEN: Image Generation")
        status = gr.Markdown(READY_MESSAGE)

        with gr.Row():
            with gr.Column():
                prompt = gr.Textbox(
                    label="Prompt",
                    lines=5,
                    placeholder="e.g., A robot holding a red skateboard.",
                )
                count = gr.Radio(
                    label="Number of images to generate",
                    choices=count_choices,
                    value=config.allowed_counts[0],
                )
                with gr.Row():
                    generate_btn = gr.Button("Generate Images", variant="primary")
                    save_btn = gr.Button("Save Session")
                    load_btn = gr.Button("Load Session")
                save_message = gr.Markdown("")

            with gr.Column():
                results = gr.Gallery(label="Generated Images", columns=3, allow_preview=False)

        with gr.Group():
            gr.Markdown("### Edit Image")
            with gr.Row():
                edit_preview = gr.Image(label="Selected image", type="pil", interactive=False)
                with gr.Column():
                    instruction = gr.Textbox(
                        label="Describe your changes",
                        lines=3,
                        placeholder="e.g., Change the skateboard to blue.",
                    )
                    with gr.Row():
                        edit_btn = gr.Button("Generate Edit", variant="primary")
                        cancel_btn = gr.Button("Cancel")
                    edit_status = gr.Markdown(NO_SELECTION_MESSAGE)

        history = gr.Gallery(label="Image History", columns=6, allow_preview=True)

        def _on_select(evt: gr.SelectData) -> tuple[Any, str, str]:
            return callbacks_map["on_select"](evt.index)

        generate_btn.click(
            fn=callbacks_map["on_generate"],
            inputs=[prompt, count],
            outputs=[results, history, status],
        )
        results.select(
            fn=_on_select,
            inputs=None,
            outputs=[edit_preview, instruction, edit_status],
        )
        edit_btn.click(
            fn=callbacks_map["on_submit_edit"],
            inputs=[instruction],
            outputs=[results, history, edit_preview, instruction, edit_status],
        )
        cancel_btn.click(
            fn=callbacks_map["on_cancel_edit"],
            inputs=None,
            outputs=[edit_preview, instruction, edit_status],
        )
        save_btn.click(
            fn=callbacks_map["on_save"],
            inputs=None,
            outputs=[save_message],
        )
        load_btn.click(
            fn=callbacks_map["on_load"],
            inputs=None,
            outputs=[prompt, count, results, history, edit_preview, save_message],
        )

    return demo
