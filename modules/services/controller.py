"""Controller sequencing user intents against the state machine and the store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from modules.services.session_store import JsonSessionStore
from modules.state.errors import SessionError, StateError, StoreError
from modules.state.machine import (
    EditCapability,
    GenerationCapability,
    ResultStateMachine,
)
from modules.state.models import EditContext, Session

logger = logging.getLogger(__name__)

GENERATE = "generate"
EDIT = "edit"
SAVE = "save"
LOAD = "load"


class OperationState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ControllerStatus(str, Enum):
    """Minimal signal consumed by the presentation layer."""

    IDLE = "idle"
    BUSY = "busy"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class OperationStatus:
    """Observable outcome of one operation."""

    operation: str
    state: OperationState
    data: Any = None
    reason: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def pending(self) -> bool:
        return self.state is OperationState.PENDING

    @property
    def succeeded(self) -> bool:
        return self.state is OperationState.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.state is OperationState.FAILED


StatusListener = Callable[[OperationStatus], None]


class SessionController:
    """Sole owner and single writer of the in-memory session.

    Asynchronous operations (generate, edit, save, load) never raise for
    domain errors; they return an :class:`OperationStatus`. Synchronous
    intents (selection, settings) raise :class:`SessionError` subclasses.
    """

    def __init__(
        self,
        generator: GenerationCapability,
        editor: EditCapability,
        store: JsonSessionStore,
        allowed_counts: Iterable[int] = (1, 3),
        session: Optional[Session] = None,
    ) -> None:
        self._machine = ResultStateMachine(generator, editor, allowed_counts)
        self._store = store
        self._session = session or Session()
        self._statuses: Dict[str, OperationStatus] = {}
        self._last_finished: Optional[OperationStatus] = None
        self._listeners: List[StatusListener] = []
        self._store_busy = False
        self._loading = False

    # Read-only views ---------------------------------------------------------
    @property
    def session(self) -> Session:
        return self._session

    @property
    def machine(self) -> ResultStateMachine:
        return self._machine

    @property
    def edit_context(self) -> Optional[EditContext]:
        return self._machine.edit_context

    @property
    def status(self) -> ControllerStatus:
        if any(status.pending for status in self._statuses.values()):
            return ControllerStatus.BUSY
        if self._last_finished is not None and self._last_finished.failed:
            return ControllerStatus.ERROR
        return ControllerStatus.IDLE

    def status_of(self, operation: str) -> Optional[OperationStatus]:
        return self._statuses.get(operation)

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # Internal helpers ---------------------------------------------------------
    def _emit(self, status: OperationStatus) -> OperationStatus:
        self._statuses[status.operation] = status
        if not status.pending:
            self._last_finished = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:  # noqa: BLE001
                logger.exception("Status listener failed for %s", status.operation)
        return status

    def _pending(self, operation: str) -> OperationStatus:
        return self._emit(OperationStatus(operation, OperationState.PENDING))

    def _succeed(self, operation: str, data: Any = None) -> OperationStatus:
        return self._emit(OperationStatus(operation, OperationState.SUCCEEDED, data=data))

    def _fail(self, operation: str, error: SessionError) -> OperationStatus:
        logger.info("%s failed (%s): %s", operation, error.kind, error)
        return self._emit(
            OperationStatus(
                operation,
                OperationState.FAILED,
                reason=str(error),
                error_kind=error.kind,
            )
        )

    def _reject(self, operation: str, error: SessionError) -> OperationStatus:
        """Refuse a request without disturbing an in-flight call of the same operation."""
        current = self._statuses.get(operation)
        if current is None or not current.pending:
            return self._fail(operation, error)
        logger.info("%s rejected while in progress: %s", operation, error)
        return OperationStatus(
            operation,
            OperationState.FAILED,
            reason=str(error),
            error_kind=error.kind,
        )

    def _begin(self, operation: str) -> Callable[[Session], None]:
        def _publish(session: Session) -> None:
            self._session = session
            self._pending(operation)

        return _publish

    def _ensure_idle(self) -> None:
        if not self._machine.is_idle:
            raise StateError("Wait for the current image request to finish.")
        if self._loading:
            raise StateError("Wait for the session to finish loading.")

    # Settings -----------------------------------------------------------------
    def set_prompt(self, prompt: str) -> Session:
        self._ensure_idle()
        self._session = self._session.with_settings(prompt=prompt or "")
        return self._session

    def set_requested_count(self, count: int) -> Session:
        self._ensure_idle()
        self._machine.validate_count(count)
        self._session = self._session.with_settings(requested_count=count)
        return self._session

    # Generation and editing ---------------------------------------------------
    async def generate(
        self, prompt: Optional[str] = None, count: Optional[int] = None
    ) -> OperationStatus:
        prompt = self._session.prompt if prompt is None else prompt
        count = self._session.requested_count if count is None else count
        try:
            if self._loading:
                raise StateError("Wait for the session to finish loading.")
            transition = await self._machine.request_generation(
                self._session, prompt, count, publish=self._begin(GENERATE)
            )
        except SessionError as exc:
            return self._reject(GENERATE, exc)

        self._session = transition.session
        if transition.error is not None:
            return self._fail(GENERATE, transition.error)
        return self._succeed(GENERATE, transition.session.current_results)

    def select_for_edit(self, index: int) -> EditContext:
        if self._loading:
            raise StateError("Wait for the session to finish loading.")
        return self._machine.select_for_edit(self._session, index)

    def update_edit_instruction(self, instruction: str) -> None:
        self._machine.update_instruction(instruction)

    async def submit_edit(self, instruction: Optional[str] = None) -> OperationStatus:
        try:
            if self._loading:
                raise StateError("Wait for the session to finish loading.")
            transition = await self._machine.submit_edit(
                self._session, instruction, publish=self._begin(EDIT)
            )
        except SessionError as exc:
            return self._reject(EDIT, exc)

        self._session = transition.session
        if transition.error is not None:
            return self._fail(EDIT, transition.error)
        return self._succeed(EDIT, transition.session.current_results)

    def cancel_edit(self) -> None:
        self._machine.cancel_edit()

    # Persistence ----------------------------------------------------------------
    async def save(self) -> OperationStatus:
        """Persist a snapshot taken before any I/O starts."""
        if self._store_busy:
            return self._reject(SAVE, StateError("Another save or load is in progress."))
        snapshot = self._session
        self._store_busy = True
        self._pending(SAVE)
        try:
            await asyncio.to_thread(self._store.save, snapshot)
        except StoreError as exc:
            return self._fail(SAVE, exc)
        finally:
            self._store_busy = False
        return self._succeed(SAVE, snapshot)

    async def load(self) -> OperationStatus:
        """Replace the whole session with the stored one."""
        if self._store_busy:
            return self._reject(LOAD, StateError("Another save or load is in progress."))
        if not self._machine.is_idle:
            return self._reject(
                LOAD, StateError("Cannot load a session while an image request is in progress.")
            )
        self._store_busy = True
        self._loading = True
        self._pending(LOAD)
        try:
            loaded = await asyncio.to_thread(self._store.load)
        except StoreError as exc:
            return self._fail(LOAD, exc)
        finally:
            self._store_busy = False
            self._loading = False

        self._machine.reset()
        self._session = loaded
        return self._succeed(LOAD, loaded)
