"""Timer core: the rest-period countdown state machine."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from resttimer.core.completion import CompletionDispatcher
    from resttimer.core.scheduler import TickScheduler

logger = logging.getLogger(__name__)


class TimerState(Enum):
    """Possible states of a rest timer."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class InvalidDuration(ValueError):
    """Raised when a duration is not a positive whole number of seconds."""


_STARTABLE_STATES = frozenset({TimerState.IDLE, TimerState.PAUSED, TimerState.COMPLETED})


def validate_duration(seconds: object, what: str = "seconds") -> int:
    """Return *seconds* if it is a positive ``int``, else raise ``InvalidDuration``."""
    if isinstance(seconds, bool) or not isinstance(seconds, int):
        raise InvalidDuration(f"{what} must be an integer, got {type(seconds).__name__}")
    if seconds <= 0:
        raise InvalidDuration(f"{what} must be greater than 0, got {seconds}")
    return seconds


@dataclass
class TimerSession:
    """Mutable countdown values for a single rest period."""

    initial_seconds: int
    remaining_seconds: int
    state: TimerState = TimerState.IDLE
    completion_fired: bool = False


class RestTimer:
    """A tick-driven countdown state machine.

    The timer never reads a clock itself: the :class:`TickScheduler` calls
    :meth:`tick` once per period while the timer is RUNNING, and drift
    compensation feeds wall-clock catch-up through :meth:`apply_elapsed`.
    Every transition that stops or restarts ticking goes through the
    scheduler, which holds the only tick registration.
    """

    def __init__(
        self,
        initial_seconds: int,
        scheduler: TickScheduler,
        dispatcher: CompletionDispatcher,
        on_tick: Optional[Callable[[TimerSession], None]] = None,
    ) -> None:
        initial_seconds = validate_duration(initial_seconds, "initial_seconds")
        self._session = TimerSession(initial_seconds, initial_seconds)
        self._scheduler = scheduler
        self._dispatcher = dispatcher
        self._on_tick = on_tick

    # -- read-only views -----------------------------------------------------

    @property
    def state(self) -> TimerState:
        return self._session.state

    @property
    def remaining_seconds(self) -> int:
        return self._session.remaining_seconds

    @property
    def initial_seconds(self) -> int:
        return self._session.initial_seconds

    @property
    def completion_fired(self) -> bool:
        return self._session.completion_fired

    @property
    def progress(self) -> float:
        """Fraction of the rest period already elapsed, from 0.0 to 1.0."""
        initial = self._session.initial_seconds
        if initial <= 0:
            return 0.0
        done = initial - self._session.remaining_seconds
        return min(max(done / initial, 0.0), 1.0)

    def snapshot(self) -> TimerSession:
        """Return a copy of the current session values."""
        return dataclasses.replace(self._session)

    # -- operations ----------------------------------------------------------

    def start(self) -> None:
        """Start counting down from IDLE, PAUSED or COMPLETED.

        A timer sitting at zero is re-armed to its initial duration first,
        which begins a new rest period.
        """
        session = self._session
        if session.state not in _STARTABLE_STATES:
            logger.debug("start() ignored in %s state", session.state.value)
            return
        if session.remaining_seconds == 0:
            session.remaining_seconds = session.initial_seconds
            session.completion_fired = False
        self._run()

    def pause(self) -> None:
        """Freeze the countdown and stop ticking.

        Acts only from RUNNING; any other state is left as is.
        """
        if self._session.state != TimerState.RUNNING:
            return
        self._scheduler.cancel()
        self._transition(TimerState.PAUSED)

    def resume(self) -> None:
        """Continue a paused countdown from where it stopped.

        Acts only from PAUSED; any other state is left as is.
        """
        if self._session.state != TimerState.PAUSED:
            return
        self._run()

    def reset(self) -> None:
        """Return to IDLE with the full initial duration from any state."""
        self._scheduler.cancel()
        self._session.remaining_seconds = self._session.initial_seconds
        self._session.completion_fired = False
        self._transition(TimerState.IDLE)

    def skip(self) -> None:
        """Abandon the rest period without completion side effects."""
        self._scheduler.cancel()
        self._transition(TimerState.IDLE)

    def add_time(self, delta_seconds: int) -> None:
        """Extend both the remaining and the initial duration by *delta_seconds*.

        The state is left alone, except that a COMPLETED timer is re-armed and
        keeps going.
        """
        delta_seconds = validate_duration(delta_seconds, "delta_seconds")
        session = self._session
        session.remaining_seconds += delta_seconds
        session.initial_seconds += delta_seconds
        logger.debug("added %ds, %ds remaining", delta_seconds, session.remaining_seconds)
        if session.state == TimerState.COMPLETED:
            session.completion_fired = False
            self._run()

    def set_custom_duration(self, seconds: int) -> None:
        """Replace the duration with *seconds* and return to IDLE.

        Valid from any state.  Raises ``InvalidDuration`` for anything but a
        positive integer, leaving the timer untouched.
        """
        seconds = validate_duration(seconds)
        self._scheduler.cancel()
        self._session.initial_seconds = seconds
        self._session.remaining_seconds = seconds
        self._session.completion_fired = False
        self._transition(TimerState.IDLE)

    def tick(self) -> None:
        """Decrement by one second; complete the rest period on reaching zero."""
        session = self._session
        if session.state != TimerState.RUNNING:
            logger.debug("late tick absorbed in %s state", session.state.value)
            return
        session.remaining_seconds = max(0, session.remaining_seconds - 1)
        if session.remaining_seconds == 0:
            self._complete()
        elif self._on_tick is not None:
            self._on_tick(self.snapshot())

    def apply_elapsed(self, elapsed_seconds: int) -> None:
        """Subtract wall-clock time that passed without ticks being delivered."""
        session = self._session
        elapsed_seconds = max(0, elapsed_seconds)
        session.remaining_seconds = max(0, session.remaining_seconds - elapsed_seconds)
        logger.debug(
            "applied %ds of elapsed time, %ds remaining",
            elapsed_seconds,
            session.remaining_seconds,
        )
        if session.state != TimerState.RUNNING:
            return
        if session.remaining_seconds == 0:
            self._complete()
        else:
            self._scheduler.begin(self.tick)

    # -- private helpers -----------------------------------------------------

    def _run(self) -> None:
        """Enter RUNNING and hand a fresh tick registration to the scheduler."""
        self._transition(TimerState.RUNNING)
        self._scheduler.begin(self.tick)

    def _complete(self) -> None:
        self._scheduler.cancel()
        self._transition(TimerState.COMPLETED)
        self._dispatcher.fire(self._session)

    def _transition(self, state: TimerState) -> None:
        if state != self._session.state:
            logger.debug("%s -> %s", self._session.state.value, state.value)
        self._session.state = state
