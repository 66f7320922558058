"""Session data model: images, the persistable session and the edit context."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, replace
from typing import Iterable, Optional

DATA_URL_PREFIX = "data:"
DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(slots=True, frozen=True, eq=True)
class Image:
    """An opaque generated artifact: encoded bytes plus their MIME type.

    Images carry no identity of their own; they are addressed by position in
    ``Session.current_results`` or ``Session.history``.
    """

    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE

    def to_base64(self) -> str:
        """Return the payload as a base64 ASCII string."""
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        """Return a ``data:<mime>;base64,<payload>`` URL."""
        return f"{DATA_URL_PREFIX}{self.mime_type};base64,{self.to_base64()}"

    @classmethod
    def from_base64(cls, payload: str, mime_type: str = DEFAULT_MIME_TYPE) -> "Image":
        """Decode a base64 payload; raises ``ValueError`` on malformed input."""
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"invalid base64 image payload: {exc}") from exc
        return cls(data=data, mime_type=mime_type)

    @classmethod
    def from_data_url(cls, url: str) -> "Image":
        """Parse a base64 data URL; raises ``ValueError`` on malformed input."""
        if not url.startswith(DATA_URL_PREFIX) or "," not in url:
            raise ValueError("not a data URL")
        header, payload = url[len(DATA_URL_PREFIX):].split(",", 1)
        mime_type, _, encoding = header.partition(";")
        if encoding != "base64":
            raise ValueError(f"unsupported data URL encoding: {encoding or 'none'}")
        return cls.from_base64(payload, mime_type or DEFAULT_MIME_TYPE)

    def __repr__(self) -> str:
        return f"Image(mime_type={self.mime_type!r}, size={len(self.data)})"


@dataclass(slots=True, frozen=True)
class Session:
    """The complete recoverable working state."""

    prompt: str = ""
    requested_count: int = 1
    current_results: tuple[Image, ...] = ()
    history: tuple[Image, ...] = ()

    def with_results(self, results: Iterable[Image]) -> "Session":
        return replace(self, current_results=tuple(results))

    def with_history(self, history: Iterable[Image]) -> "Session":
        return replace(self, history=tuple(history))

    def with_settings(
        self, prompt: Optional[str] = None, requested_count: Optional[int] = None
    ) -> "Session":
        return replace(
            self,
            prompt=self.prompt if prompt is None else prompt,
            requested_count=self.requested_count if requested_count is None else requested_count,
        )


@dataclass(slots=True)
class EditContext:
    """Transient selection of one current result for editing."""

    index: int
    instruction: str = ""
