"""One-off script running a generate / edit / save / load cycle against the real backend."""

import asyncio
from pathlib import Path

from config.settings import load_config
from modules.ui.layout import build_controller
from modules.utils.logging import setup_logging


async def run() -> None:
    # 1. Real configuration and backend, as selected by IMA_GEN_BACKEND
    config = load_config()
    setup_logging(config)
    controller = build_controller(config)

    # 2. Generate one image
    status = await controller.generate("A robot holding a red skateboard.", 1)
    print("generate:", status.state.value, status.reason or "")
    if status.failed:
        return

    # 3. Edit it in place
    controller.select_for_edit(0)
    status = await controller.submit_edit("Change the skateboard to blue.")
    print("edit:", status.state.value, status.reason or "")

    # 4. Round-trip through the store
    print("save:", (await controller.save()).state.value)
    print("load:", (await controller.load()).state.value)

    session = controller.session
    print(f"results={len(session.current_results)} history={len(session.history)}")
    out_dir = Path("debug_session_output")
    out_dir.mkdir(exist_ok=True)
    for position, image in enumerate(session.history):
        suffix = image.mime_type.split("/")[-1]
        path = out_dir / f"history_{position}.{suffix}"
        path.write_bytes(image.data)
        print("saved:", path.resolve())


if __name__ == "__main__":
    asyncio.run(run())
