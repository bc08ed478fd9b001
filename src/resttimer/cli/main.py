"""CLI entry point for resttimer.

Uses Click to expose the ``resttimer`` command group.  Each command runs a
rest countdown in the foreground of the terminal; Ctrl-Z / ``fg`` are fed to
the engine as suspend/resume notifications.
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import sys
import threading
import time
from typing import Any, Callable, Iterator, Optional, TypeVar

import click

import resttimer
from resttimer.core.completion import CompletionPrompt, HapticPattern, PresentationListener
from resttimer.core.presets import REST_PRESETS, format_time, get_preset
from resttimer.core.scheduler import TickScheduler
from resttimer.core.session import RestHistory, RestSession, SessionConfig
from resttimer.core.settings import RestTimerSettings
from resttimer.core.timer import TimerState

T = TypeVar("T")

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting bad input to a CLI error.

    On ``ValueError`` (which includes ``InvalidDuration``) or ``KeyError`` the
    message is printed to stderr and the process exits with code 1.
    """
    try:
        return action()
    except (ValueError, KeyError) as exc:
        message = exc.args[0] if isinstance(exc, KeyError) and exc.args else str(exc)
        click.echo(message, err=True)
        sys.exit(1)


class TerminalPresenter(PresentationListener):
    """Honours engine requests with terminal output."""

    def request_haptic_pattern(self, kind: HapticPattern) -> None:
        click.echo("\a", nl=False)

    def request_completion_prompt(self, prompt: CompletionPrompt) -> None:
        click.echo("\rRest complete!       ")
        if prompt.next_exercise:
            click.echo(f"Up next: {prompt.next_exercise}")

    def request_warning(self, seconds_left: int, message: str) -> None:
        click.echo(f"\r{message}       ")


def _ticker(session: RestSession) -> Callable[[float], None]:
    """Return a sleep function that redraws the countdown before each wait."""

    def sleep(delay: float) -> None:
        message, _ = session.status()
        click.echo(f"\r{message}   ", nl=False)
        time.sleep(delay)

    return sleep


@contextlib.contextmanager
def _suspend_signals(session: RestSession) -> Iterator[None]:
    """Route SIGTSTP/SIGCONT to the session's suspend/resume callbacks."""
    if not hasattr(signal, "SIGTSTP") or threading.current_thread() is not threading.main_thread():
        yield
        return

    def on_stop(signum: int, frame: object) -> None:
        session.on_suspend()
        signal.signal(signal.SIGTSTP, signal.SIG_DFL)
        os.kill(os.getpid(), signal.SIGTSTP)

    def on_continue(signum: int, frame: object) -> None:
        signal.signal(signal.SIGTSTP, on_stop)
        session.on_resume()

    previous = {
        signal.SIGTSTP: signal.signal(signal.SIGTSTP, on_stop),
        signal.SIGCONT: signal.signal(signal.SIGCONT, on_continue),
    }
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def _rest(
    config: SessionConfig,
    settings: RestTimerSettings,
    scheduler: TickScheduler,
    history: RestHistory,
) -> Optional[SessionConfig]:
    """Run one rest period in the foreground, offering to extend at the end.

    Returns the config for the next set, or ``None`` after the last one.
    """
    session = RestSession(
        config,
        listener=TerminalPresenter(),
        settings=settings,
        scheduler=scheduler,
        history=history,
    )
    with session, _suspend_signals(session):
        session.start()
        try:
            session.run(sleep=_ticker(session))
            while session.state == TimerState.COMPLETED and click.confirm(
                f"Rest {settings.extend_seconds}s more?", default=False
            ):
                session.extend()
                session.run(sleep=_ticker(session))
        except (KeyboardInterrupt, click.Abort):
            session.skip()
            click.echo("\nRest skipped")
            sys.exit(130)

        if session.state != TimerState.COMPLETED:
            message, exit_code = session.status()
            click.echo(message)
            sys.exit(exit_code)

        return session.proceed()


def _print_history(history: RestHistory, limit: int = 5) -> None:
    records = history.records()[:limit]
    if not records:
        return
    click.echo("Recent rests:")
    for record in records:
        click.echo(
            f"  {record.exercise} set {record.set}: "
            f"{format_time(record.actual_seconds)} (planned {format_time(record.target_seconds)})"
        )


def _countdown(config: SessionConfig, settings: RestTimerSettings) -> None:
    """Rest after each remaining set of the exercise, then summarise."""
    history = RestHistory(settings.history_limit)
    with TickScheduler(settings.tick_interval) as scheduler:
        upcoming = _rest(config, settings, scheduler, history)
        while upcoming is not None:
            click.echo(
                f"Time for set {upcoming.current_set} of {upcoming.total_sets}: {upcoming.exercise}"
            )
            if not settings.auto_start:
                click.pause("Press any key to start the next rest...")
            upcoming = _rest(upcoming, settings, scheduler, history)

    click.echo("Workout complete! Great job finishing all sets.")
    _print_history(history)


def _session_options(command: Callable[..., None]) -> Callable[..., None]:
    """Attach the options shared by every countdown command."""
    options = [
        click.option("--exercise", default="Exercise", show_default=True, help="Exercise being rested from."),
        click.option("--next-exercise", default=None, help="Exercise that follows this rest."),
        click.option("--set", "current_set", type=int, default=1, show_default=True, help="Set just finished."),
        click.option("--total-sets", type=int, default=1, show_default=True, help="Sets in the exercise."),
        click.option("--extend-seconds", type=int, default=30, show_default=True, help="Seconds added by an extension."),
        click.option("--haptics/--no-haptics", default=True, help="Ring the terminal bell on alerts."),
        click.option("--notifications/--no-notifications", default=True, help="Show 30s/10s warnings."),
        click.option("--auto-start/--no-auto-start", default=True, help="Start the next set's rest without waiting for a key press."),
    ]
    for option in reversed(options):
        command = option(command)
    return command


def _build(
    seconds: int,
    exercise: str,
    next_exercise: Optional[str],
    current_set: int,
    total_sets: int,
    extend_seconds: int,
    haptics: bool,
    notifications: bool,
    auto_start: bool,
) -> tuple[SessionConfig, RestTimerSettings]:
    config = SessionConfig(
        initial_seconds=seconds,
        exercise=exercise,
        next_exercise=next_exercise,
        current_set=current_set,
        total_sets=total_sets,
    )
    settings = RestTimerSettings(
        extend_seconds=extend_seconds,
        haptic_feedback=haptics,
        notifications=notifications,
        auto_start=auto_start,
    )
    return config, settings


@click.group(context_settings={"auto_envvar_prefix": "RESTTIMER"})
@click.version_option(version=resttimer.__version__, prog_name="resttimer")
@click.option("-v", "--verbose", is_flag=True, help="Log engine transitions to stderr.")
def cli(verbose: bool) -> None:
    """resttimer: a rest-period timer for training between sets."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=_LOG_FORMAT,
        force=True,
    )


@cli.command()
@click.argument("seconds", type=int)
@_session_options
def start(seconds: int, **options: Any) -> None:
    """Rest for SECONDS seconds."""
    config, settings = _run(lambda: _build(seconds, **options))
    _countdown(config, settings)


@cli.command()
@click.argument("name")
@_session_options
def preset(name: str, **options: Any) -> None:
    """Rest for the length of the preset NAME."""
    rest = _run(lambda: get_preset(name))
    config, settings = _run(lambda: _build(rest.seconds, **options))
    _countdown(config, settings)


@cli.command()
def presets() -> None:
    """List the available rest presets."""
    for rest in REST_PRESETS:
        click.echo(f"{rest.name:<12} {format_time(rest.seconds):>5}  {rest.description}")
