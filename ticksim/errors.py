"""Exception taxonomy for the phase scheduler.

Scheduling calls validate their arguments locally and raise
`InvalidArgument`. `run()` raises `StarvationError` or `StalledError` when the
loop cannot make progress; both carry the partial `RunSummary` collected so
far. Cancelling a handle twice, or after it ran, is reported through
`AlreadyCancelled` / `AlreadyFired` (only raised when `cancel(strict=True)`).
"""
from __future__ import annotations

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .entry import RunSummary


class SchedulerError(Exception):
    """Base class for every error raised by ticksim."""


class InvalidArgument(SchedulerError, ValueError):
    """A scheduling or configuration parameter is out of range."""


class RunHalted(SchedulerError):
    """`run()` stopped before all queues drained."""

    def __init__(self, message: str, summary: Optional["RunSummary"] = None):
        super().__init__(message)
        self.summary = summary


class StarvationError(RunHalted):
    """The microtask queue did not empty within the configured bound."""


class StalledError(RunHalted):
    """Poll had to block but no queued or resolvable event could ever arrive."""


class CancelError(SchedulerError):
    def __init__(self, handle):
        super().__init__(f"cannot cancel {handle!r}")
        self.handle = handle


class AlreadyFired(CancelError):
    """The entry behind the handle has already been executed."""


class AlreadyCancelled(CancelError):
    """The handle was cancelled before."""
