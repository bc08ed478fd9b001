"""Tick scheduler: the single owner of the periodic tick registration."""

from __future__ import annotations

import itertools
import logging
import time
from types import TracebackType
from typing import Callable, Optional

logger = logging.getLogger(__name__)

_DEFAULT_INTERVAL = 1.0


class TickHandle:
    """One tick registration: a callback and the deadline it fires at next."""

    def __init__(self, handle_id: int, callback: Callable[[], None], due: float) -> None:
        self.handle_id = handle_id
        self.callback = callback
        self.due = due
        self.cancelled = False

    def __repr__(self) -> str:
        status = "cancelled" if self.cancelled else f"due={self.due:.3f}"
        return f"<TickHandle #{self.handle_id} {status}>"


class TickScheduler:
    """Cooperative, single-threaded fixed-period tick source.

    At most one :class:`TickHandle` is active.  :meth:`begin` always cancels
    the current handle before registering a new one, so two registrations can
    never decrement the same countdown.  Nothing fires on its own: the owner
    drives the scheduler through :meth:`run_pending` or :meth:`run`.

    Usable as a context manager; leaving the block cancels the active handle
    on every exit path.
    """

    def __init__(
        self,
        interval: float = _DEFAULT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._interval = interval
        self._clock = clock
        self._handle: Optional[TickHandle] = None
        self._ids = itertools.count(1)

    def __enter__(self) -> TickScheduler:
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.cancel()

    # -- registration --------------------------------------------------------

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def active(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Optional[TickHandle]:
        return self._handle

    def begin(self, callback: Callable[[], None]) -> TickHandle:
        """Register *callback* to fire once per interval, replacing any prior handle."""
        if self._handle is not None:
            logger.debug("replacing active registration %r", self._handle)
            self.cancel()
        self._handle = TickHandle(next(self._ids), callback, self._clock() + self._interval)
        return self._handle

    def cancel(self) -> None:
        """Cancel the active registration; it will never fire again."""
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancelled = True

    # -- driving -------------------------------------------------------------

    def seconds_until_next(self) -> Optional[float]:
        """Return the delay until the next tick, or ``None`` when nothing is registered."""
        if self._handle is None:
            return None
        return max(self._handle.due - self._clock(), 0.0)

    def run_pending(self) -> bool:
        """Fire the active handle once if its deadline has passed.

        A handle that fell behind (the process was stalled) fires a single
        time and is rescheduled one interval from now; missed ticks are not
        replayed.
        """
        handle = self._handle
        if handle is None:
            return False
        now = self._clock()
        if now < handle.due:
            return False
        handle.due += self._interval
        if handle.due <= now:
            handle.due = now + self._interval
        handle.callback()
        return True

    def run(self, sleep: Callable[[float], None] = time.sleep) -> None:
        """Block, sleeping between deadlines, until no registration is left."""
        while self._handle is not None:
            delay = self.seconds_until_next()
            if delay:
                sleep(delay)
            self.run_pending()
