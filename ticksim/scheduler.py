"""A deterministic simulator of a single-threaded event loop.

`PhaseScheduler` owns a virtual clock and one queue per kind of deferred
callback. `run()` walks the phases in a fixed order on every pass:

    timers -> pending -> poll -> check -> close

and drains the microtask ("next tick") queue to empty after every single
callback, whatever the phase. Nothing here waits on a real clock: when Poll has
nothing to do it jumps the virtual clock to the next known event.

Side effects that callbacks want to observe are recorded with `log()` and
returned, in order, in the `RunSummary`.
"""
from __future__ import annotations

from collections import deque
from heapq import heapify, heappop, heappush
import logging
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from .config import SchedulerConfig
from .entry import (
    CallbackKind,
    CloseEntry,
    Entry,
    EntryStatus,
    IOCompletionEntry,
    ImmediateEntry,
    MicrotaskEntry,
    PendingEntry,
    Phase,
    RunSummary,
    SideEffect,
    TimerEntry,
)
from .errors import (
    AlreadyCancelled,
    AlreadyFired,
    InvalidArgument,
    RunHalted,
    SchedulerError,
    StalledError,
    StarvationError,
)
from .handle import (
    CancelOutcome,
    CloseHandle,
    Handle,
    IOHandle,
    ImmediateHandle,
    PendingHandle,
    TimerHandle,
)
from .io import IOSource, SideEffectSink

_logger = logging.getLogger(__name__)


def _check_duration(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgument(f"{name} must be a number, got {value!r}")
    if value < 0:
        raise InvalidArgument(f"{name} must be >= 0")
    return float(value)


def _check_callback(callback: Any) -> None:
    if not callable(callback):
        raise InvalidArgument(f"callback must be callable, got {callback!r}")


def _discard(queue: Deque[Entry], entry: Entry) -> None:
    kept = [e for e in queue if e is not entry]
    queue.clear()
    queue.extend(kept)


class PhaseScheduler(SideEffectSink):
    """Phase-ordered event loop over a virtual clock.

    Registration calls may be made before `run()` (the "main script") or from
    inside any running callback; both simply append to the relevant queue.

    Methods:
    - `schedule_timer(callback, delay, *args)`: run in Timers once due.
    - `schedule_immediate(callback, *args)`: run in the next Check phase.
    - `schedule_io(callback, latency, *args)`: run in Poll once ready.
    - `schedule_microtask(callback, *args)`: run before anything else.
    - `schedule_pending(callback, *args)`: run in the next pass's Pending phase.
    - `schedule_close(callback, *args)`: run in the Close phase.
    - `run(until=None, max_passes=None)`: loop until every queue is empty.
    """

    def __init__(self, config: Optional[SchedulerConfig] = None, start_time: float = 0.0):
        self.config = config or SchedulerConfig()
        self._time: float = _check_duration("start_time", start_time)
        self._phase: Phase = Phase.IDLE
        self._counter: int = 0
        self._pass_index: int = 0

        self._timers: List[Tuple[float, int, TimerEntry]] = []
        self._pending: Deque[PendingEntry] = deque()
        self._io: List[IOCompletionEntry] = []
        self._immediates: Deque[ImmediateEntry] = deque()
        self._closing: Deque[CloseEntry] = deque()
        self._microtasks: Deque[MicrotaskEntry] = deque()

        self._sources: List[IOSource] = []
        self._effects: List[SideEffect] = []
        self._current: Optional[Entry] = None
        self._running = False
        self._until: Optional[float] = None

    @property
    def now(self) -> float:
        return self._time

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def running(self) -> bool:
        return self._running

    @property
    def sources(self) -> List[IOSource]:
        return list(self._sources)

    def _next_order(self) -> int:
        order = self._counter
        self._counter += 1
        return order

    # --- registration ---
    def schedule_timer(self, callback: Callable[..., Any], delay: float = 0.0, *args) -> TimerHandle:
        """Run `callback(*args)` in the Timers phase once `delay` has elapsed.

        The effective delay is never below `config.min_timer_delay`, so a
        0-delay timer registered now cannot fire in a Timers phase that is
        already due at the current instant.
        """
        _check_callback(callback)
        delay = _check_duration("delay", delay)
        due_at = self._time + max(delay, self.config.min_timer_delay)
        entry = TimerEntry(callback, args, self._next_order(), due_at)
        heappush(self._timers, (due_at, entry.order, entry))
        _logger.debug("t=%g: timer #%d due at %g", self._time, entry.order, due_at)
        return TimerHandle(self, entry)

    def schedule_immediate(self, callback: Callable[..., Any], *args) -> ImmediateHandle:
        _check_callback(callback)
        entry = ImmediateEntry(callback, args, self._next_order())
        self._immediates.append(entry)
        return ImmediateHandle(self, entry)

    def schedule_io(self, callback: Callable[..., Any], latency: Optional[float], *args) -> IOHandle:
        """Register a simulated I/O completion.

        With a numeric `latency` the completion becomes pollable at
        `now + latency`. With `latency=None` it stays outstanding until
        `mark_ready` is called for its handle.
        """
        _check_callback(callback)
        ready_at = None if latency is None else self._time + _check_duration("latency", latency)
        entry = IOCompletionEntry(callback, args, self._next_order(), ready_at)
        self._io.append(entry)
        return IOHandle(self, entry)

    def schedule_microtask(self, callback: Callable[..., Any], *args) -> None:
        _check_callback(callback)
        self._microtasks.append(MicrotaskEntry(callback, args, self._next_order()))

    def schedule_pending(self, callback: Callable[..., Any], *args) -> PendingHandle:
        """Defer a system callback to the Pending phase of the next pass."""
        _check_callback(callback)
        entry = PendingEntry(callback, args, self._next_order(), self._pass_index)
        self._pending.append(entry)
        return PendingHandle(self, entry)

    def schedule_close(self, callback: Callable[..., Any], *args) -> CloseHandle:
        _check_callback(callback)
        entry = CloseEntry(callback, args, self._next_order())
        self._closing.append(entry)
        return CloseHandle(self, entry)

    def mark_ready(self, handle: IOHandle, result: Any = None, delay: float = 0.0) -> None:
        self._check_handle(handle)
        if not isinstance(handle, IOHandle):
            raise InvalidArgument(f"mark_ready needs an IOHandle, got {handle!r}")
        entry: IOCompletionEntry = handle.entry
        if not entry.queued:
            raise InvalidArgument(f"{handle!r} is no longer queued")
        if entry.ready_at is not None:
            raise InvalidArgument(f"{handle!r} is already resolved")
        entry.result = result
        entry.ready_at = self._time + _check_duration("delay", delay)

    def attach_source(self, source: IOSource) -> None:
        if not isinstance(source, IOSource):
            raise InvalidArgument(f"not an IOSource: {source!r}")
        if source not in self._sources:
            self._sources.append(source)

    def detach_source(self, source: IOSource) -> None:
        if source in self._sources:
            self._sources.remove(source)

    # --- running callbacks ---
    def log(self, message: Any) -> None:
        """Record an observable side effect at the current time and phase."""
        kind = self._current.kind if self._current is not None else CallbackKind.MAIN
        effect = SideEffect(self._time, self._phase, kind, str(message))
        self._effects.append(effect)
        _logger.debug("effect %s", effect)

    def consume(self, duration: float) -> None:
        """Simulate synchronous work inside a callback by advancing the clock."""
        self._time += _check_duration("duration", duration)

    # --- cancellation ---
    def _check_handle(self, handle: Handle) -> None:
        if not isinstance(handle, Handle) or handle.scheduler is not self:
            raise InvalidArgument(f"{handle!r} does not belong to this scheduler")

    def cancel(self, handle: Handle, strict: bool = False) -> CancelOutcome:
        self._check_handle(handle)
        entry = handle.entry
        if entry.status is EntryStatus.FIRED:
            _logger.warning("cancel ignored, %r already fired", handle)
            if strict:
                raise AlreadyFired(handle)
            return CancelOutcome.ALREADY_FIRED
        if entry.status is EntryStatus.CANCELLED:
            _logger.warning("cancel ignored, %r already cancelled", handle)
            if strict:
                raise AlreadyCancelled(handle)
            return CancelOutcome.ALREADY_CANCELLED

        if isinstance(entry, TimerEntry):
            self._timers = [item for item in self._timers if item[2] is not entry]
            heapify(self._timers)
        elif isinstance(entry, IOCompletionEntry):
            self._io = [e for e in self._io if e is not entry]
        elif isinstance(entry, ImmediateEntry):
            _discard(self._immediates, entry)
        elif isinstance(entry, PendingEntry):
            _discard(self._pending, entry)
        elif isinstance(entry, CloseEntry):
            _discard(self._closing, entry)
        entry.status = EntryStatus.CANCELLED
        _logger.debug("t=%g: cancelled %s", self._time, entry.describe())
        return CancelOutcome.CANCELLED

    # --- introspection ---
    def pending_counts(self) -> Dict[str, int]:
        return {
            "timers": len(self._timers),
            "pending": len(self._pending),
            "io": len(self._io),
            "immediates": len(self._immediates),
            "close": len(self._closing),
            "microtasks": len(self._microtasks),
        }

    def next_timer_due(self) -> Optional[float]:
        return self._timers[0][0] if self._timers else None

    def has_work(self) -> bool:
        return bool(self._timers or self._pending or self._io or self._immediates
                    or self._closing or self._microtasks)

    def is_idle(self) -> bool:
        return not self.has_work()

    # --- loop ---
    def run(self, until: Optional[float] = None, max_passes: Optional[int] = None) -> RunSummary:
        """Run passes until every queue is empty.

        `until` (virtual time) and `max_passes` stop the loop early; the
        summary then has `drained=False`. With `until`, the loop stops at the
        first pass boundary past it. Raises `StarvationError` or
        `StalledError` (with `.summary` set) when the loop cannot progress.
        Exceptions raised by callbacks propagate unchanged, with `.summary`
        holding what the run logged before the failure.
        """
        if self._running:
            raise SchedulerError("run() called from inside a running callback")
        if until is not None and _check_duration("until", until) < self._time:
            raise InvalidArgument("until lies in the past")
        if max_passes is not None and (isinstance(max_passes, bool) or not isinstance(max_passes, int) or max_passes < 1):
            raise InvalidArgument("max_passes must be a positive integer")

        passes = 0
        self._running = True
        self._until = until
        _logger.info("run started at t=%g: %s", self._time, self.pending_counts())
        try:
            # whatever the main script queued as microtasks runs before the loop
            self._drain_microtasks()
            while self.has_work():
                if max_passes is not None and passes >= max_passes:
                    break
                if until is not None and self._time > until:
                    break
                self._pass_index += 1
                passes += 1
                pass_start = self._time
                self._run_timers()
                self._run_pending()
                self._run_poll()
                self._run_check()
                self._run_close()
                self._phase = Phase.IDLE
                if not self.has_work():
                    break
                # a pass costs at least one tick; Poll blocking or busy callbacks may cost more
                self._time = max(self._time, pass_start + self.config.tick_duration)
        except RunHalted as exc:
            exc.summary = self._summary(passes, error=exc)
            _logger.error("run halted at t=%g after %d pass(es): %s", self._time, passes, exc)
            raise
        except Exception as exc:
            exc.summary = self._summary(passes, error=exc)
            raise
        finally:
            self._running = False
            self._until = None
            self._phase = Phase.IDLE
            self._current = None

        summary = self._summary(passes)
        _logger.info("run finished at t=%g after %d pass(es), drained=%s", self._time, passes, summary.drained)
        return summary

    def _summary(self, passes: int, error: Optional[Exception] = None) -> RunSummary:
        effects, self._effects = self._effects, []
        return RunSummary(
            effects=effects,
            passes=passes,
            final_time=self._time,
            drained=error is None and not self.has_work(),
            error=error,
        )

    def _invoke(self, entry: Entry) -> None:
        self._current = entry
        _logger.debug("t=%g %s: running %s", self._time, self._phase.value, entry.describe())
        try:
            entry.invoke()
        except Exception:
            _logger.exception("callback %s failed in %s phase", entry.describe(), self._phase.value)
            raise
        finally:
            self._current = None

    def _execute(self, entry: Entry) -> None:
        if not entry.queued:
            return
        self._invoke(entry)
        self._drain_microtasks()

    def _drain_microtasks(self) -> None:
        limit = self.config.max_microtasks_per_drain
        executed = 0
        while self._microtasks:
            if executed >= limit:
                raise StarvationError(
                    f"microtask queue still holds {len(self._microtasks)} entries "
                    f"after {limit} callbacks at t={self._time:g}")
            self._invoke(self._microtasks.popleft())
            executed += 1

    def _run_timers(self) -> None:
        self._phase = Phase.TIMERS
        due: List[TimerEntry] = []
        while self._timers and self._timers[0][0] <= self._time:
            due.append(heappop(self._timers)[2])
        for entry in due:
            self._execute(entry)

    def _run_pending(self) -> None:
        self._phase = Phase.PENDING
        batch = [e for e in self._pending if e.pass_index < self._pass_index]
        if not batch:
            return
        kept = [e for e in self._pending if e.pass_index >= self._pass_index]
        self._pending.clear()
        self._pending.extend(kept)
        for entry in batch:
            self._execute(entry)

    def _poll_sources(self) -> None:
        for source in list(self._sources):
            resolved = source.poll(self, self._time)
            if resolved:
                _logger.debug("t=%g: source %s resolved %d operation(s)", self._time, source.name, resolved)

    def _run_ready_io(self) -> int:
        ready = sorted((e for e in self._io if e.is_ready(self._time)), key=IOCompletionEntry.sort_key)
        ready = ready[: self.config.max_poll_callbacks]
        if not ready:
            return 0
        taken = {id(e) for e in ready}
        self._io = [e for e in self._io if id(e) not in taken]
        for entry in ready:
            self._execute(entry)
        return len(ready)

    def _next_event_time(self) -> Optional[float]:
        candidates = [e.ready_at for e in self._io if e.ready_at is not None]
        if self._timers:
            candidates.append(self._timers[0][0])
        return min(candidates) if candidates else None

    def _run_poll(self) -> None:
        self._phase = Phase.POLL
        self._poll_sources()
        if self._run_ready_io():
            return
        # nothing to poll: only block when no other phase has work waiting
        if self._immediates or self._pending or self._closing:
            return
        if self._timers and self._timers[0][0] <= self._time:
            return
        target = self._next_event_time()
        if target is None:
            if self._io and not any(source.has_pending() for source in self._sources):
                raise StalledError(
                    f"{len(self._io)} I/O operation(s) outstanding at t={self._time:g} "
                    "and nothing left that could resolve them")
            # a source still owes completions: end the pass and poll again next tick
            return
        limit = self._time + self.config.poll_budget
        if self._until is not None:
            limit = min(limit, self._until)
        wake_at = max(self._time, min(target, limit))
        if wake_at > self._time:
            _logger.debug("t=%g: poll blocking until %g", self._time, wake_at)
            self._time = wake_at
        self._poll_sources()
        self._run_ready_io()

    def _run_check(self) -> None:
        self._phase = Phase.CHECK
        batch = list(self._immediates)
        self._immediates.clear()
        for entry in batch:
            self._execute(entry)

    def _run_close(self) -> None:
        self._phase = Phase.CLOSE
        batch = list(self._closing)
        self._closing.clear()
        for entry in batch:
            self._execute(entry)
