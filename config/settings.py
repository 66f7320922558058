"""Configuration helpers for the IMA-GEN client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

SESSION_KEY = "ima-gen-session"
DEFAULT_EDIT_MODEL_ID = "timbrooks/instruct-pix2pix"
DEFAULT_GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image-preview"


@dataclass(slots=True)
class AppConfig:
    """Centralized application configuration."""

    backend: str = "diffusion"
    model_dir: Path = Path("models")
    text2img_model_id: str = "models/sdxl-turbo"
    edit_model_id: str = DEFAULT_EDIT_MODEL_ID
    use_fp16: bool = True
    enable_xformers: bool = True
    enable_vae_tiling: bool = True
    output_mime_type: str = "image/jpeg"
    gemini_key: Optional[str] = None
    gemini_image_model: str = DEFAULT_GEMINI_IMAGE_MODEL
    store_dir: Path = Path("data")
    session_key: str = SESSION_KEY
    allowed_counts: tuple[int, ...] = (1, 3)
    log_dir: Path = Path("logs")
    metadata: dict[str, Any] = field(default_factory=dict)


def _load_env_file(path: Path) -> None:
    """Populate environment variables from a simple KEY=VALUE .env file."""
    if not path.exists():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ[key.strip()] = value.strip()


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Return an AppConfig instance with environment-aware settings."""
    env_path = Path(config_path) if config_path else Path(".env")
    _load_env_file(env_path)

    model_dir_env = os.getenv("MODEL_DIR", "models")
    model_dir = Path(model_dir_env).expanduser().resolve()
    for env_name in ("HUGGINGFACE_HUB_CACHE", "DIFFUSERS_CACHE"):
        os.environ.setdefault(env_name, str(model_dir))

    text2img_model_id = os.getenv("TEXT2IMG_MODEL_ID") or str(model_dir / "sdxl-turbo")
    edit_model_id = os.getenv("EDIT_MODEL_ID") or DEFAULT_EDIT_MODEL_ID

    metadata: dict[str, Any] = {
        "text2img_model_id": text2img_model_id,
        "edit_model_id": edit_model_id,
    }

    gemini_model = os.getenv("GEMINI_IMAGE_MODEL")
    if gemini_model:
        metadata["gemini_image_model"] = gemini_model

    return AppConfig(
        backend=os.getenv("IMA_GEN_BACKEND", "diffusion").strip().lower(),
        model_dir=model_dir,
        text2img_model_id=text2img_model_id,
        edit_model_id=edit_model_id,
        output_mime_type=os.getenv("OUTPUT_MIME_TYPE", "image/jpeg"),
        gemini_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"),
        gemini_image_model=gemini_model or DEFAULT_GEMINI_IMAGE_MODEL,
        store_dir=Path(os.getenv("SESSION_STORE_DIR", "data")).expanduser(),
        log_dir=Path(os.getenv("LOG_DIR", "logs")).expanduser(),
        metadata=metadata,
    )
