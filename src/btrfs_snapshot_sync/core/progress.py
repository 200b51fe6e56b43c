"""Byte metering and progress reporting for streaming transfers."""

import contextlib
import logging
import sys
import time
from typing import Callable, Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .. import __logger__, __util__

logger = logging.getLogger(__name__)

REPORT_INTERVAL = 1.0


class ByteMeter:
    """Count bytes passing through a pipe and report progress periodically.

    ``report`` is called with ``(total_bytes, elapsed_seconds)`` at most once
    per ``interval`` seconds. Without a ``report`` callback only the total is
    kept.
    """

    def __init__(
        self,
        report: Optional[Callable[[int, float], None]] = None,
        interval: float = REPORT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.total = 0
        self._report = report
        self._interval = interval
        self._clock = clock
        self._started = clock()
        self._last_report = self._started

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    def update(self, count: int) -> None:
        self.total += count
        if self._report is None:
            return
        now = self._clock()
        if now - self._last_report >= self._interval:
            self._last_report = now
            self._report(self.total, now - self._started)


def _rate(total: int, elapsed: float) -> str:
    return f"{__util__.format_bytes(total / elapsed if elapsed > 0 else 0)}/s"


def log_progress(total: int, elapsed: float) -> None:
    """Default progress reporter writing to the log."""
    logger.info(
        "  %s transmitted (%s)", __util__.format_bytes(total), _rate(total, elapsed)
    )


def is_interactive() -> bool:
    """True when progress can be drawn on the terminal."""
    return sys.stderr.isatty()


class TransferProgress:
    """Live rich progress line for one transfer.

    Used as a context manager; the instance itself is the
    ``report(total_bytes, elapsed)`` callback. The stream size is unknown,
    so the bar pulses while the byte count and rate update.
    """

    def __init__(self, name: str, console=None) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("{task.fields[transmitted]}"),
            TextColumn("{task.fields[rate]}"),
            TimeElapsedColumn(),
            console=console or __logger__.cons,
            transient=True,
        )
        self._name = name
        self._task = None

    def __enter__(self) -> "TransferProgress":
        self._progress.start()
        self._task = self._progress.add_task(
            self._name,
            total=None,
            transmitted=__util__.format_bytes(0),
            rate="",
        )
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self._progress.stop()

    def __call__(self, total: int, elapsed: float) -> None:
        self._progress.update(
            self._task,
            completed=total,
            transmitted=__util__.format_bytes(total),
            rate=_rate(total, elapsed),
        )


def progress_reporter(name: str, show_progress: bool):
    """Context manager yielding the progress callback for one transfer.

    Yields None when progress is off, a live ``TransferProgress`` on a
    terminal and ``log_progress`` otherwise.
    """
    if not show_progress:
        return contextlib.nullcontext(None)
    if is_interactive():
        return TransferProgress(name)
    return contextlib.nullcontext(log_progress)
