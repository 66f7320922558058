"""Result state machine coordinating generation and edit requests."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence

from modules.state import history
from modules.state.errors import (
    EditIndexError,
    NoEditResultError,
    ProviderError,
    StateError,
    ValidationError,
)
from modules.state.models import EditContext, Image, Session

logger = logging.getLogger(__name__)

GENERATION_FALLBACK_MESSAGE = "An error occurred while generating the images."
EDIT_FALLBACK_MESSAGE = "An error occurred while editing the image."


class Phase(str, Enum):
    """Single-flight phases of the machine."""

    IDLE = "idle"
    GENERATING = "generating"
    EDITING = "editing"


class GenerationCapability(Protocol):
    """Anything able to turn a prompt into ``count`` images."""

    def generate(self, prompt: str, count: int) -> Sequence[Image]:
        ...


class EditCapability(Protocol):
    """Anything able to apply a text instruction to an image."""

    def edit(self, image: Image, instruction: str) -> Optional[Image]:
        ...


@dataclass(slots=True, frozen=True)
class Transition:
    """Session produced by an asynchronous operation, plus its failure if any."""

    session: Session
    error: Optional[ProviderError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ResultStateMachine:
    """Own the generate/edit/select discipline for one session.

    The machine never stores the session itself: every operation receives the
    caller's current :class:`Session` and hands back the next one. It only
    tracks the phase, the optional edit selection and the last failure.
    """

    def __init__(
        self,
        generator: GenerationCapability,
        editor: EditCapability,
        allowed_counts: Iterable[int] = (1, 3),
    ) -> None:
        self._generator = generator
        self._editor = editor
        self.allowed_counts = tuple(allowed_counts)
        self._phase = Phase.IDLE
        self._edit_context: Optional[EditContext] = None
        self.last_error: Optional[ProviderError] = None

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def is_idle(self) -> bool:
        return self._phase is Phase.IDLE

    @property
    def edit_context(self) -> Optional[EditContext]:
        """A copy of the active selection, or ``None``."""
        if self._edit_context is None:
            return None
        return replace(self._edit_context)

    def validate_count(self, count: Any) -> int:
        """Return ``count`` when it belongs to the allowed set."""
        if isinstance(count, bool) or not isinstance(count, int) or count not in self.allowed_counts:
            allowed = ", ".join(str(value) for value in self.allowed_counts)
            raise ValidationError(f"Number of images must be one of: {allowed}.")
        return count

    def _enter(self, phase: Phase) -> None:
        if self._phase is not Phase.IDLE:
            raise StateError(
                f"Cannot start {phase.value} while {self._phase.value} is in progress."
            )
        self._phase = phase

    async def _call(self, func: Callable[..., Any], *args: Any, fallback: str) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except ProviderError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Image capability failed")
            raise ProviderError(str(exc) or fallback) from exc

    @staticmethod
    def _checked_batch(images: Optional[Iterable[Any]], count: int) -> tuple[Image, ...]:
        batch = tuple(images or ())
        if len(batch) != count:
            raise ProviderError(
                f"Expected {count} image(s) from the model but received {len(batch)}."
            )
        if not all(isinstance(image, Image) for image in batch):
            raise ProviderError("The model returned an unexpected image payload.")
        return batch

    async def request_generation(
        self,
        session: Session,
        prompt: str,
        count: int,
        publish: Optional[Callable[[Session], None]] = None,
    ) -> Transition:
        """Generate a new batch, replacing the current results.

        ``publish`` receives the cleared session before the external call so
        observers never show the previous batch next to a pending request.
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Please enter a prompt.")
        self.validate_count(count)
        self._enter(Phase.GENERATING)

        self._edit_context = None
        self.last_error = None
        pending = session.with_settings(prompt=prompt, requested_count=count).with_results(())
        logger.info("Generating %d image(s)", count)
        try:
            if publish is not None:
                publish(pending)
            images = await self._call(
                self._generator.generate, prompt, count, fallback=GENERATION_FALLBACK_MESSAGE
            )
            batch = self._checked_batch(images, count)
        except ProviderError as error:
            self.last_error = error
            logger.warning("Generation failed: %s", error)
            return Transition(session=pending, error=error)
        finally:
            self._phase = Phase.IDLE

        logger.info("Generation produced %d image(s)", len(batch))
        completed = pending.with_results(batch).with_history(
            history.record_batch(pending.history, batch)
        )
        return Transition(session=completed)

    def select_for_edit(self, session: Session, index: int) -> EditContext:
        if not self.is_idle:
            raise StateError("Cannot select an image while another operation is in progress.")
        if isinstance(index, bool) or not isinstance(index, int):
            raise EditIndexError(f"Invalid image index: {index!r}.")
        if not 0 <= index < len(session.current_results):
            raise EditIndexError(f"No current result at index {index}.")
        self._edit_context = EditContext(index=index)
        return replace(self._edit_context)

    def update_instruction(self, instruction: str) -> None:
        if self._edit_context is None:
            raise StateError("Select an image to edit first.")
        self._edit_context.instruction = instruction

    async def submit_edit(
        self,
        session: Session,
        instruction: Optional[str] = None,
        publish: Optional[Callable[[Session], None]] = None,
    ) -> Transition:
        """Apply an instruction to the selected result and replace it in place."""
        context = self._edit_context
        if context is None:
            raise StateError("Select an image to edit first.")
        text = context.instruction if instruction is None else instruction
        if not text or not text.strip():
            raise ValidationError("Please enter a description of your desired changes.")
        if context.index >= len(session.current_results):
            raise EditIndexError(f"No current result at index {context.index}.")
        self._enter(Phase.EDITING)

        context.instruction = text
        index = context.index
        self.last_error = None
        logger.info("Editing result %d", index)
        try:
            if publish is not None:
                publish(session)
            edited = await self._call(
                self._editor.edit,
                session.current_results[index],
                text,
                fallback=EDIT_FALLBACK_MESSAGE,
            )
            if edited is None:
                raise NoEditResultError()
            if not isinstance(edited, Image):
                raise ProviderError("The model returned an unexpected edit result.")
        except ProviderError as error:
            self.last_error = error
            logger.warning("Edit of result %d failed: %s", index, error)
            return Transition(session=session, error=error)
        finally:
            self._phase = Phase.IDLE
            self._edit_context = None

        results = list(session.current_results)
        results[index] = edited
        logger.info("Edit of result %d succeeded", index)
        return Transition(
            session=session.with_results(results).with_history(
                history.record(session.history, edited)
            )
        )

    def cancel_edit(self) -> None:
        """Drop the selection; an already submitted edit still runs to completion."""
        self._edit_context = None

    def reset(self) -> None:
        self._edit_context = None
        self.last_error = None
