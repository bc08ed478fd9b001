"""Rest session: wires the countdown engine together for one rest period."""

from __future__ import annotations

import dataclasses
import logging
import time
from collections import deque
from dataclasses import dataclass
from types import TracebackType
from typing import Callable, Deque, List, Optional, Tuple

from resttimer.core.completion import (
    CompletionDispatcher,
    CompletionEvent,
    PresentationListener,
)
from resttimer.core.drift import BackgroundDriftCompensator
from resttimer.core.presets import format_time
from resttimer.core.scheduler import TickScheduler
from resttimer.core.settings import RestTimerSettings
from resttimer.core.timer import RestTimer, TimerSession, TimerState, validate_duration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionConfig:
    """What the caller supplies when a rest period begins."""

    initial_seconds: int
    exercise: str
    next_exercise: Optional[str] = None
    current_set: int = 1
    total_sets: int = 1

    def __post_init__(self) -> None:
        validate_duration(self.initial_seconds, "initial_seconds")
        if self.current_set < 1:
            raise ValueError(f"current_set must be at least 1, got {self.current_set}")
        if self.total_sets < self.current_set:
            raise ValueError(
                f"total_sets ({self.total_sets}) must not be less than "
                f"current_set ({self.current_set})"
            )


@dataclass(frozen=True)
class RestRecord:
    exercise: str
    set: int
    target_seconds: int  # rest planned for the set
    actual_seconds: int  # rest counted down, including extensions
    completed_at: float  # wall-clock (time.time)


class RestHistory:
    """The most recent completed rests, newest first."""

    def __init__(self, limit: int = 10) -> None:
        self._records: Deque[RestRecord] = deque(maxlen=limit)

    def __len__(self) -> int:
        return len(self._records)

    def record(
        self,
        event: CompletionEvent,
        target_seconds: Optional[int] = None,
        replace_latest: bool = False,
    ) -> RestRecord:
        """Add a completed rest.

        *target_seconds* defaults to the rest the event reports.  With
        *replace_latest* the newest record is superseded, which is how an
        extended rest updates its own entry instead of adding a second one.
        """
        entry = RestRecord(
            exercise=event.exercise,
            set=event.set,
            target_seconds=event.elapsed_rest_seconds if target_seconds is None else target_seconds,
            actual_seconds=event.elapsed_rest_seconds,
            completed_at=time.time(),
        )
        if replace_latest and self._records:
            self._records.popleft()
        self._records.appendleft(entry)
        return entry

    def records(self) -> List[RestRecord]:
        return list(self._records)


class RestSession:
    """Orchestrates one rest period between sets.

    Owns the :class:`RestTimer` and its collaborators.  Passing a scheduler
    that a previous session used hands ownership of the tick registration to
    this session: the first ``begin`` cancels whatever the old session left.
    """

    def __init__(
        self,
        config: SessionConfig,
        listener: Optional[PresentationListener] = None,
        settings: Optional[RestTimerSettings] = None,
        scheduler: Optional[TickScheduler] = None,
        history: Optional[RestHistory] = None,
        now_millis: Optional[Callable[[], int]] = None,
    ) -> None:
        self._config = config
        self._settings = settings if settings is not None else RestTimerSettings()
        self._scheduler = (
            scheduler if scheduler is not None else TickScheduler(self._settings.tick_interval)
        )
        self._history = history if history is not None else RestHistory(self._settings.history_limit)
        self._dispatcher = CompletionDispatcher(
            config, listener, self._settings, on_event=self._record_rest
        )
        self._timer = RestTimer(
            config.initial_seconds, self._scheduler, self._dispatcher, on_tick=self._check_warnings
        )
        self._target_seconds = config.initial_seconds
        self._recorded = False  # this rest period already has a history entry
        if now_millis is None:
            self._drift = BackgroundDriftCompensator(self._timer, self._scheduler)
        else:
            self._drift = BackgroundDriftCompensator(self._timer, self._scheduler, now_millis)

    def __enter__(self) -> RestSession:
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    # -- read-only views -----------------------------------------------------

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def timer(self) -> RestTimer:
        return self._timer

    @property
    def scheduler(self) -> TickScheduler:
        return self._scheduler

    @property
    def history(self) -> RestHistory:
        return self._history

    @property
    def state(self) -> TimerState:
        return self._timer.state

    @property
    def remaining_seconds(self) -> int:
        return self._timer.remaining_seconds

    def snapshot(self) -> TimerSession:
        return self._timer.snapshot()

    def status(self) -> Tuple[str, int]:
        """Return ``(message, exit_code)``."""
        state = self._timer.state
        remaining = format_time(self._timer.remaining_seconds)
        if state == TimerState.RUNNING:
            return f"{remaining} remaining", 0
        if state == TimerState.PAUSED:
            return f"{remaining} remaining (paused)", 0
        if state == TimerState.COMPLETED:
            return "Rest complete", 0
        return "No active rest", 1

    # -- timer operations ----------------------------------------------------

    def start(self) -> None:
        if self._timer.state == TimerState.COMPLETED:
            self._recorded = False
        self._timer.start()

    def pause(self) -> None:
        self._timer.pause()

    def resume(self) -> None:
        self._timer.resume()

    def reset(self) -> None:
        self._timer.reset()
        self._recorded = False

    def skip(self) -> None:
        self._timer.skip()

    def add_time(self, delta_seconds: int) -> None:
        self._timer.add_time(delta_seconds)

    def set_custom_duration(self, seconds: int) -> None:
        self._timer.set_custom_duration(seconds)
        self._target_seconds = seconds
        self._recorded = False

    def tick(self) -> None:
        self._timer.tick()

    # -- host lifecycle ------------------------------------------------------

    def on_suspend(self) -> None:
        self._drift.on_suspend()

    def on_resume(self) -> None:
        self._drift.on_resume()

    # -- completion follow-ups -----------------------------------------------

    def extend(self) -> None:
        """Rest a little longer by the configured increment."""
        self._timer.add_time(self._settings.extend_seconds)

    def proceed(self) -> Optional[SessionConfig]:
        """Leave this rest period and return the config for the next set.

        Returns ``None`` when the last set has been done.
        """
        self._timer.skip()
        config = self._config
        if config.current_set >= config.total_sets:
            logger.debug("all %d sets of %s done", config.total_sets, config.exercise)
            return None
        return dataclasses.replace(config, current_set=config.current_set + 1)

    # -- driving -------------------------------------------------------------

    def run(self, sleep: Callable[[float], None] = time.sleep) -> None:
        """Drive the countdown in the current thread until ticking stops."""
        try:
            self._scheduler.run(sleep)
        finally:
            self.close()

    def close(self) -> None:
        """Release the tick registration."""
        self._scheduler.cancel()

    # -- private helpers -----------------------------------------------------

    def _record_rest(self, event: CompletionEvent) -> None:
        self._history.record(
            event, target_seconds=self._target_seconds, replace_latest=self._recorded
        )
        self._recorded = True

    def _check_warnings(self, session: TimerSession) -> None:
        if session.remaining_seconds in self._settings.warning_thresholds:
            self._dispatcher.warn(session.remaining_seconds)
