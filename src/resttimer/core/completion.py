"""Completion dispatch and the outbound presentation requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from resttimer.core.settings import RestTimerSettings
from resttimer.core.timer import TimerSession

if TYPE_CHECKING:
    from resttimer.core.session import SessionConfig

logger = logging.getLogger(__name__)
event_logger = logging.getLogger("resttimer.events")


class HapticPattern(Enum):
    """Vibration patterns as (wait, vibrate, wait, vibrate, ...) milliseconds."""

    COMPLETION = (0, 500, 200, 500)
    WARNING = (200,)

    @property
    def durations_ms(self) -> Tuple[int, ...]:
        return self.value


@dataclass(frozen=True)
class CompletionEvent:
    exercise: str
    set: int
    total_sets: int
    elapsed_rest_seconds: int
    next_exercise: Optional[str]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "exercise": self.exercise,
            "set": self.set,
            "totalSets": self.total_sets,
            "elapsedRestSeconds": self.elapsed_rest_seconds,
            "nextExercise": self.next_exercise,
        }


@dataclass(frozen=True)
class CompletionPrompt:
    """Request to show "rest complete" with its two follow-ups: extend or proceed."""

    next_exercise: Optional[str]
    offer_extend: bool = True
    extend_seconds: int = 30


class PresentationListener:
    """Receives side-effect requests from the engine.

    The default implementation ignores every request; presentation layers
    override the ones they can honour.
    """

    def request_haptic_pattern(self, kind: HapticPattern) -> None:
        pass

    def request_completion_prompt(self, prompt: CompletionPrompt) -> None:
        pass

    def request_warning(self, seconds_left: int, message: str) -> None:
        pass


class CompletionDispatcher:
    """Fires the "rest over" side effects exactly once per rest period.

    Both the tick path and the drift-reconciliation path may detect the zero
    crossing; the ``completion_fired`` flag on the session makes every call
    after the first a no-op.
    """

    def __init__(
        self,
        config: SessionConfig,
        listener: Optional[PresentationListener] = None,
        settings: Optional[RestTimerSettings] = None,
        on_event: Optional[Callable[[CompletionEvent], None]] = None,
    ) -> None:
        self._config = config
        self._listener = listener if listener is not None else PresentationListener()
        self._settings = settings if settings is not None else RestTimerSettings()
        self._on_event = on_event

    def fire(self, session: TimerSession) -> bool:
        """Emit the completion event and requests.  Returns ``False`` if already fired."""
        if session.completion_fired:
            logger.debug("completion already fired, ignoring duplicate")
            return False
        session.completion_fired = True

        config = self._config
        event = CompletionEvent(
            exercise=config.exercise,
            set=config.current_set,
            total_sets=config.total_sets,
            elapsed_rest_seconds=session.initial_seconds,
            next_exercise=config.next_exercise,
        )
        event_logger.info("rest complete: %s", config.exercise, extra={"event": event.as_dict()})
        if self._on_event is not None:
            self._on_event(event)

        if self._settings.haptic_feedback:
            self._listener.request_haptic_pattern(HapticPattern.COMPLETION)
        self._listener.request_completion_prompt(
            CompletionPrompt(
                next_exercise=config.next_exercise,
                offer_extend=True,
                extend_seconds=self._settings.extend_seconds,
            )
        )
        return True

    def warn(self, seconds_left: int) -> None:
        """Announce that only *seconds_left* seconds of rest remain."""
        if not self._settings.notifications:
            return
        if self._settings.haptic_feedback:
            self._listener.request_haptic_pattern(HapticPattern.WARNING)
        self._listener.request_warning(seconds_left, f"{seconds_left} seconds remaining")
