"""Background drift compensation.

Most hosts stop delivering periodic callbacks while the process is
suspended, so a purely tick-counted countdown would freeze in the background
and resume with stale time remaining.  The compensator records the wall-clock
time at suspension and, on resume, subtracts the whole seconds that really
passed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from resttimer.core.scheduler import TickScheduler
from resttimer.core.timer import RestTimer, TimerState

logger = logging.getLogger(__name__)


def _epoch_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SuspendMarker:
    suspended_at_epoch_millis: int


class BackgroundDriftCompensator:
    """Reconciles a :class:`RestTimer` with wall-clock time across suspension."""

    def __init__(
        self,
        timer: RestTimer,
        scheduler: TickScheduler,
        now_millis: Callable[[], int] = _epoch_millis,
    ) -> None:
        self._timer = timer
        self._scheduler = scheduler
        self._now_millis = now_millis
        self._marker: Optional[SuspendMarker] = None

    @property
    def marker(self) -> Optional[SuspendMarker]:
        return self._marker

    def on_suspend(self) -> None:
        """Record the suspension time if the countdown is running."""
        if self._timer.state != TimerState.RUNNING or self._marker is not None:
            return
        self._marker = SuspendMarker(self._now_millis())
        # no ticks arrive while suspended; a stray one would be counted twice
        self._scheduler.cancel()
        logger.debug("suspended at %d", self._marker.suspended_at_epoch_millis)

    def on_resume(self) -> None:
        """Subtract the time spent suspended and restart or complete the countdown."""
        marker, self._marker = self._marker, None
        if marker is None:
            return
        elapsed_ms = self._now_millis() - marker.suspended_at_epoch_millis
        if elapsed_ms < 0:
            logger.warning("wall clock moved back %dms while suspended", -elapsed_ms)
            elapsed_ms = 0
        elapsed = elapsed_ms // 1000
        if self._timer.state != TimerState.RUNNING:
            logger.debug("timer stopped while suspended, ignoring %ds", elapsed)
            return
        logger.debug("resumed after %ds", elapsed)
        self._timer.apply_elapsed(elapsed)
