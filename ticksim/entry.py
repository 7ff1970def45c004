"""Queue entries, side-effect records and the run summary.

Entries are created by the `PhaseScheduler` registration calls and consumed
exactly once by phase execution. Timing data lives on the entry, not on the
callback: the same callable may sit in several queues at once.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, List, Optional, Tuple


class Phase(Enum):
    """Scheduler phases, in execution order, plus the halted state."""
    TIMERS = "timers"
    PENDING = "pending"
    POLL = "poll"
    CHECK = "check"
    CLOSE = "close"
    IDLE = "idle"


class CallbackKind(Enum):
    """Which queue a running callback came from."""
    MAIN = "main"
    TIMER = "timer"
    PENDING = "pending"
    IO = "io"
    IMMEDIATE = "immediate"
    MICROTASK = "microtask"
    CLOSE = "close"


class EntryStatus(Enum):
    QUEUED = "queued"
    FIRED = "fired"
    CANCELLED = "cancelled"


@dataclass
class Entry:
    callback: Callable[..., Any]
    args: Tuple[Any, ...]
    order: int
    status: EntryStatus = field(default=EntryStatus.QUEUED, init=False, compare=False)

    kind: ClassVar[CallbackKind] = CallbackKind.MAIN

    def invoke(self) -> Any:
        self.status = EntryStatus.FIRED
        return self.callback(*self.args)

    @property
    def queued(self) -> bool:
        return self.status is EntryStatus.QUEUED

    def describe(self) -> str:
        name = getattr(self.callback, "__qualname__", None) or repr(self.callback)
        return f"{self.kind.value}#{self.order} {name}"


@dataclass
class TimerEntry(Entry):
    """A timer firing once the clock reaches `due_at`."""
    due_at: float
    kind: ClassVar[CallbackKind] = CallbackKind.TIMER

    def sort_key(self) -> Tuple[float, int]:
        return (self.due_at, self.order)


@dataclass
class ImmediateEntry(Entry):
    kind: ClassVar[CallbackKind] = CallbackKind.IMMEDIATE


@dataclass
class IOCompletionEntry(Entry):
    """A simulated I/O result.

    `ready_at` stays None while the operation is unresolved; it is set either
    at registration (simulated latency) or by `mark_ready`.
    """
    ready_at: Optional[float]
    result: Any = field(default=None, init=False, compare=False)
    kind: ClassVar[CallbackKind] = CallbackKind.IO

    def is_ready(self, now: float) -> bool:
        return self.ready_at is not None and self.ready_at <= now

    def sort_key(self) -> Tuple[float, int]:
        return (self.ready_at, self.order)


@dataclass
class MicrotaskEntry(Entry):
    kind: ClassVar[CallbackKind] = CallbackKind.MICROTASK


@dataclass
class PendingEntry(Entry):
    """A system callback deferred to the Pending phase of a later pass."""
    pass_index: int
    kind: ClassVar[CallbackKind] = CallbackKind.PENDING


@dataclass
class CloseEntry(Entry):
    kind: ClassVar[CallbackKind] = CallbackKind.CLOSE


@dataclass(frozen=True)
class SideEffect:
    """One observable effect recorded through `PhaseScheduler.log`."""
    time: float
    phase: Phase
    kind: CallbackKind
    message: str

    def __str__(self) -> str:
        return f"[{self.time:g}] {self.phase.value:<7} {self.kind.value:<9} {self.message}"


@dataclass
class RunSummary:
    """What a `run()` observed, in order.

    `drained` is True when the loop halted because every queue was empty.
    `error` is set when the run was halted by a `RunHalted` error or a
    failing callback.
    """
    effects: List[SideEffect] = field(default_factory=list)
    passes: int = 0
    final_time: float = 0.0
    drained: bool = False
    error: Optional[Exception] = None

    @property
    def messages(self) -> List[str]:
        return [e.message for e in self.effects]

    def by_kind(self, kind: CallbackKind) -> List[SideEffect]:
        return [e for e in self.effects if e.kind is kind]
