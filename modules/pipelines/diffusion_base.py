"""Shared loading for the local diffusers-backed services."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import torch

from config.settings import AppConfig

logger = logging.getLogger(__name__)


class DiffusionService:
    """Lazily builds one diffusers pipeline and keeps it for the process lifetime.

    Subclasses set ``model_key`` (the ``metadata``/config attribute naming the
    checkpoint) and pass their pipeline class to :meth:`_load`.
    """

    model_key = ""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self._pipeline: Optional[Any] = None
        self._device: Optional[str] = None

    def _preferred_device(self) -> str:
        return "cuda" if torch.cuda.is_available() else "cpu"

    def _preferred_dtype(self, device: str) -> torch.dtype:
        if self.config.use_fp16 and device == "cuda":
            return torch.float16
        return torch.float32

    def _resolve_model_id(self) -> str:
        return self.config.metadata.get(self.model_key) or getattr(self.config, self.model_key)

    def _load(self, pipeline_cls: Any) -> Any:
        if self._pipeline is not None:
            return self._pipeline

        device = self._preferred_device()
        model_id = self._resolve_model_id()
        cache_dir = Path(self.config.model_dir)
        cache_dir.mkdir(parents=True, exist_ok=True)

        logger.info("Loading %s from %s on %s", pipeline_cls.__name__, model_id, device)
        pipeline = pipeline_cls.from_pretrained(
            model_id,
            torch_dtype=self._preferred_dtype(device),
            cache_dir=str(cache_dir),
            use_safetensors=True,
        )
        pipeline.to(device)

        if self.config.enable_xformers:
            try:
                pipeline.enable_xformers_memory_efficient_attention()
            except Exception:  # noqa: BLE001
                logger.debug("xformers unavailable for %s", model_id)

        if self.config.enable_vae_tiling and hasattr(pipeline, "enable_vae_tiling"):
            pipeline.enable_vae_tiling()

        self._pipeline = pipeline
        self._device = device
        return pipeline
