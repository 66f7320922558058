"""Error taxonomy shared by the state machine, store and controller."""

from __future__ import annotations

NO_EDIT_RESULT_MESSAGE = (
    "The model could not edit the image as requested. Please try a different prompt."
)


class SessionError(Exception):
    """Base class for every recoverable session error."""

    kind = "error"


class ValidationError(SessionError, ValueError):
    """Rejected input: empty prompt or instruction, unsupported count."""

    kind = "validation"


class StateError(SessionError):
    """Operation not valid in the current state."""

    kind = "state"


class EditIndexError(SessionError, IndexError):
    """Selected index lies outside the current results."""

    kind = "index"


class ProviderError(SessionError):
    """The external generation or edit capability failed."""

    kind = "provider"


class NoEditResultError(ProviderError):
    """The edit call resolved but produced no editable image."""

    kind = "no_edit_result"

    def __init__(self, message: str = NO_EDIT_RESULT_MESSAGE) -> None:
        super().__init__(message)


class StoreError(SessionError):
    """Persisting or restoring the session failed."""

    kind = "store"


class NotFoundError(StoreError):
    """No saved session exists."""

    kind = "not_found"


class CorruptDataError(StoreError):
    """The stored snapshot could not be parsed."""

    kind = "corrupt"
