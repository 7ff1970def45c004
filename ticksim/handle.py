"""Handles returned by the scheduling calls."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

from .entry import Entry, EntryStatus, IOCompletionEntry, TimerEntry

if TYPE_CHECKING:
    from .scheduler import PhaseScheduler


class CancelOutcome(Enum):
    CANCELLED = "cancelled"
    ALREADY_FIRED = "already_fired"
    ALREADY_CANCELLED = "already_cancelled"


class Handle:
    """Reference to a queued entry, usable to cancel it before it runs."""

    def __init__(self, scheduler: "PhaseScheduler", entry: Entry):
        self._scheduler = scheduler
        self._entry = entry

    @property
    def scheduler(self) -> "PhaseScheduler":
        return self._scheduler

    @property
    def entry(self) -> Entry:
        return self._entry

    @property
    def order(self) -> int:
        return self._entry.order

    def fired(self) -> bool:
        return self._entry.status is EntryStatus.FIRED

    def cancelled(self) -> bool:
        return self._entry.status is EntryStatus.CANCELLED

    def cancel(self, strict: bool = False) -> CancelOutcome:
        """Remove the entry from its queue if it has not run yet.

        Returns a `CancelOutcome`. With `strict=True` the non-fatal outcomes
        raise `AlreadyFired` / `AlreadyCancelled` instead.
        """
        return self._scheduler.cancel(self, strict=strict)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._entry.describe()}, {self._entry.status.value})"


class TimerHandle(Handle):
    @property
    def due_at(self) -> float:
        entry: TimerEntry = self._entry
        return entry.due_at


class ImmediateHandle(Handle):
    pass


class PendingHandle(Handle):
    pass


class CloseHandle(Handle):
    pass


class IOHandle(Handle):
    """Handle on a simulated I/O operation.

    `result` is whatever the sink passed to `mark_ready`; completion callbacks
    created through `FileReadSource` receive it as arguments.
    """

    @property
    def ready_at(self) -> Optional[float]:
        entry: IOCompletionEntry = self._entry
        return entry.ready_at

    @property
    def resolved(self) -> bool:
        return self.ready_at is not None

    @property
    def result(self) -> Any:
        entry: IOCompletionEntry = self._entry
        return entry.result
