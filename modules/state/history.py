"""Append-only, newest-first ledger of every produced image."""

from __future__ import annotations

from typing import Iterable

from modules.state.models import Image


def record(history: tuple[Image, ...], image: Image) -> tuple[Image, ...]:
    """Prepend a single image."""
    return (image,) + history


def record_batch(history: tuple[Image, ...], images: Iterable[Image]) -> tuple[Image, ...]:
    """Prepend a whole batch as one contiguous block, keeping its order."""
    return tuple(images) + history


def replace_all(images: Iterable[Image]) -> tuple[Image, ...]:
    """Replace the ledger wholesale; only session load does this."""
    return tuple(images)
