"""Tests for the TickScheduler."""

from unittest.mock import MagicMock

import pytest

from resttimer.core.scheduler import TickScheduler

# ---------------------------------------------------------------------------
# Helper: a manually advanced monotonic clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def scheduler(clock: FakeClock) -> TickScheduler:
    return TickScheduler(clock=clock)


# ---------------------------------------------------------------------------
# Registration ownership
# ---------------------------------------------------------------------------


class TestRegistration:
    def test_new_scheduler_is_inactive(self, scheduler: TickScheduler) -> None:
        assert not scheduler.active
        assert scheduler.handle is None
        assert scheduler.seconds_until_next() is None

    def test_begin_registers_one_interval_ahead(
        self, scheduler: TickScheduler, clock: FakeClock
    ) -> None:
        handle = scheduler.begin(MagicMock())
        assert scheduler.active
        assert handle.due == clock.now + 1.0
        assert scheduler.seconds_until_next() == pytest.approx(1.0)

    def test_begin_cancels_previous_handle(self, scheduler: TickScheduler) -> None:
        first = scheduler.begin(MagicMock())
        second = scheduler.begin(MagicMock())
        assert first.cancelled
        assert not second.cancelled
        assert scheduler.handle is second

    def test_only_latest_callback_fires(
        self, scheduler: TickScheduler, clock: FakeClock
    ) -> None:
        old, new = MagicMock(), MagicMock()
        scheduler.begin(old)
        scheduler.begin(new)
        clock.advance(1.0)
        scheduler.run_pending()
        old.assert_not_called()
        new.assert_called_once_with()

    def test_cancel_is_immediate(self, scheduler: TickScheduler, clock: FakeClock) -> None:
        callback = MagicMock()
        handle = scheduler.begin(callback)
        scheduler.cancel()
        clock.advance(5.0)
        assert scheduler.run_pending() is False
        assert handle.cancelled
        callback.assert_not_called()

    def test_cancel_without_handle_is_noop(self, scheduler: TickScheduler) -> None:
        scheduler.cancel()
        assert not scheduler.active

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            TickScheduler(interval=0)

    def test_handle_ids_increase(self, scheduler: TickScheduler) -> None:
        first = scheduler.begin(MagicMock())
        second = scheduler.begin(MagicMock())
        assert second.handle_id > first.handle_id


# ---------------------------------------------------------------------------
# run_pending()
# ---------------------------------------------------------------------------


class TestRunPending:
    def test_not_due_does_not_fire(self, scheduler: TickScheduler, clock: FakeClock) -> None:
        callback = MagicMock()
        scheduler.begin(callback)
        clock.advance(0.5)
        assert scheduler.run_pending() is False
        callback.assert_not_called()

    def test_fires_once_per_interval(self, scheduler: TickScheduler, clock: FakeClock) -> None:
        callback = MagicMock()
        scheduler.begin(callback)
        for _ in range(3):
            clock.advance(1.0)
            assert scheduler.run_pending() is True
        assert callback.call_count == 3

    def test_stall_does_not_replay_missed_ticks(
        self, scheduler: TickScheduler, clock: FakeClock
    ) -> None:
        callback = MagicMock()
        scheduler.begin(callback)
        clock.advance(30.0)
        scheduler.run_pending()
        scheduler.run_pending()
        assert callback.call_count == 1
        assert scheduler.seconds_until_next() == pytest.approx(1.0)

    def test_callback_may_cancel_itself(
        self, scheduler: TickScheduler, clock: FakeClock
    ) -> None:
        scheduler.begin(scheduler.cancel)
        clock.advance(1.0)
        scheduler.run_pending()
        assert not scheduler.active

    def test_callback_may_replace_itself(
        self, scheduler: TickScheduler, clock: FakeClock
    ) -> None:
        replacement = MagicMock()
        scheduler.begin(lambda: scheduler.begin(replacement))
        clock.advance(1.0)
        scheduler.run_pending()
        assert scheduler.handle.callback is replacement
        assert scheduler.seconds_until_next() == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# run() and scoped teardown
# ---------------------------------------------------------------------------


class TestRunAndTeardown:
    def test_run_until_callback_cancels(
        self, scheduler: TickScheduler, clock: FakeClock
    ) -> None:
        fired = []

        def callback() -> None:
            fired.append(clock.now)
            if len(fired) == 3:
                scheduler.cancel()

        scheduler.begin(callback)
        scheduler.run(sleep=clock.sleep)
        assert fired == [1001.0, 1002.0, 1003.0]

    def test_run_without_handle_returns(self, scheduler: TickScheduler) -> None:
        sleep = MagicMock()
        scheduler.run(sleep=sleep)
        sleep.assert_not_called()

    def test_context_exit_cancels(self, clock: FakeClock) -> None:
        with TickScheduler(clock=clock) as scheduler:
            handle = scheduler.begin(MagicMock())
        assert handle.cancelled
        assert not scheduler.active

    def test_context_exit_cancels_on_error(self, clock: FakeClock) -> None:
        scheduler = TickScheduler(clock=clock)
        with pytest.raises(RuntimeError):
            with scheduler:
                handle = scheduler.begin(MagicMock())
                raise RuntimeError("boom")
        assert handle.cancelled
        assert not scheduler.active
