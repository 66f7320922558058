"""Durable storage of the session snapshot in a single JSON slot."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from config.settings import SESSION_KEY
from modules.state import history
from modules.state.errors import CorruptDataError, NotFoundError, StoreError
from modules.state.models import DEFAULT_MIME_TYPE, Image, Session

logger = logging.getLogger(__name__)

# Field aliases written by the earlier browser build of the client.
_LEGACY_KEYS = {
    "requestedCount": "numImages",
    "currentResults": "images",
}


def encode_image(image: Image) -> Dict[str, str]:
    return {"data": image.to_base64(), "mimeType": image.mime_type}


def decode_image(entry: Any) -> Image:
    """Accept either ``{"data", "mimeType"}`` or a data-URL string."""
    try:
        if isinstance(entry, str):
            return Image.from_data_url(entry)
        if isinstance(entry, dict):
            payload = entry.get("data")
            mime_type = entry.get("mimeType") or DEFAULT_MIME_TYPE
            if isinstance(payload, str) and isinstance(mime_type, str):
                if payload.startswith("data:"):
                    return Image.from_data_url(payload)
                return Image.from_base64(payload, mime_type)
    except ValueError as exc:
        raise CorruptDataError(f"Malformed image entry: {exc}") from exc
    raise CorruptDataError(f"Malformed image entry of type {type(entry).__name__}.")


def session_to_document(session: Session) -> Dict[str, Any]:
    return {
        "prompt": session.prompt,
        "requestedCount": session.requested_count,
        "currentResults": [encode_image(image) for image in session.current_results],
        "historyImages": [encode_image(image) for image in session.history],
    }


def _field(document: Dict[str, Any], name: str) -> Any:
    value = document.get(name)
    if value is None and name in _LEGACY_KEYS:
        value = document.get(_LEGACY_KEYS[name])
    return value


def _decode_images(value: Any, name: str) -> List[Image]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise CorruptDataError(f"Field '{name}' must be a list.")
    return [decode_image(entry) for entry in value]


def document_to_session(document: Any, allowed_counts: Iterable[int] = (1, 3)) -> Session:
    """Build a Session, applying defaults for missing fields."""
    if not isinstance(document, dict):
        raise CorruptDataError("Session snapshot must be a JSON object.")

    prompt = _field(document, "prompt")
    if prompt is None:
        prompt = ""
    if not isinstance(prompt, str):
        raise CorruptDataError("Field 'prompt' must be a string.")

    count = _field(document, "requestedCount")
    if count is None:
        count = 1
    if isinstance(count, bool) or not isinstance(count, int) or count not in tuple(allowed_counts):
        raise CorruptDataError(f"Unsupported requestedCount: {count!r}.")

    return Session(
        prompt=prompt,
        requested_count=count,
        current_results=tuple(_decode_images(_field(document, "currentResults"), "currentResults")),
        history=history.replace_all(_decode_images(_field(document, "historyImages"), "historyImages")),
    )


class JsonSessionStore:
    """Keep one serialized session under a fixed, well-known key."""

    def __init__(
        self,
        store_dir: Path,
        key: str = SESSION_KEY,
        allowed_counts: Iterable[int] = (1, 3),
    ) -> None:
        self.store_dir = Path(store_dir)
        self.key = key
        self.allowed_counts = tuple(allowed_counts)

    @property
    def path(self) -> Path:
        return self.store_dir / f"{self.key}.json"

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, session: Session) -> None:
        """Write the snapshot atomically; the previous one survives any failure."""
        payload = json.dumps(session_to_document(session), ensure_ascii=False)
        tmp_path: Optional[str] = None
        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.store_dir), prefix=f".{self.key}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                fp.write(payload)
                fp.flush()
                os.fsync(fp.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as exc:
            raise StoreError(f"Failed to save session: {exc}") from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
        logger.info(
            "Saved session to %s (%d result(s), %d history image(s))",
            self.path,
            len(session.current_results),
            len(session.history),
        )

    def load(self) -> Session:
        if not self.exists():
            raise NotFoundError("No saved session found.")
        try:
            raw = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptDataError(f"Session snapshot is not UTF-8 text: {exc}") from exc
        except OSError as exc:
            raise StoreError(f"Failed to read session: {exc}") from exc
        try:
            document = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            # also raised for oversized integer literals and deep nesting
            raise CorruptDataError(f"Session snapshot is not valid JSON: {exc}") from exc
        session = document_to_session(document, self.allowed_counts)
        logger.info("Loaded session from %s", self.path)
        return session

    def clear(self) -> None:
        """Remove the stored snapshot if any."""
        if self.exists():
            self.path.unlink()
