"""Engine coordinating a `PhaseScheduler` with its I/O sources.

The engine keeps a registry of named `IOSource` objects (a file reader is
registered by default), attaches them to the scheduler, and offers a compact
status printout of the loop state.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .config import SchedulerConfig
from .entry import RunSummary
from .handle import IOHandle
from .io import FileReadSource, IOSource
from .scheduler import PhaseScheduler

_logger = logging.getLogger(__name__)


class LoopEngine:
    def __init__(self, config: Optional[SchedulerConfig] = None, start_time: float = 0.0, file_latency: float = 0.0):
        """Create an engine with an attached `PhaseScheduler`.

        Args:
            config: Optional scheduler configuration (defaults apply if omitted).
            start_time: Initial virtual time.
            file_latency: Completion latency of the default "files" source.
        """
        self.scheduler = PhaseScheduler(config=config, start_time=start_time)
        self.sources: Dict[str, IOSource] = {}
        self.add_source(FileReadSource(latency=file_latency))

    # --- source registry ---
    def add_source(self, source: IOSource, name: Optional[str] = None) -> str:
        """Register an `IOSource` and return its name.

        If `name` is omitted, `source.name` is used. Raises ValueError on
        name collision.
        """
        sid = name or getattr(source, "name", None)
        if not sid:
            raise ValueError("source must have a name (or provide name)")
        if sid in self.sources:
            raise ValueError(f"source name already registered: {sid}")
        self.sources[sid] = source
        self.scheduler.attach_source(source)
        _logger.debug("registered source %s", sid)
        return sid

    def get_source(self, name: str) -> Optional[IOSource]:
        return self.sources.get(name)

    def remove_source(self, name: str) -> Optional[IOSource]:
        source = self.sources.pop(name, None)
        if source is not None:
            self.scheduler.detach_source(source)
        return source

    # --- helpers for scenario code ---
    def read_file(self, path: Union[str, Path], callback: Callable[..., Any], encoding: Optional[str] = None) -> IOHandle:
        """Read `path` through the "files" source; `callback(error, data)`."""
        source = self.get_source("files")
        if not isinstance(source, FileReadSource):
            raise KeyError("files")
        return source.read_file(self.scheduler, path, callback, encoding=encoding)

    def log(self, message: Any) -> None:
        self.scheduler.log(message)

    def run(self, until: Optional[float] = None, max_passes: Optional[int] = None) -> RunSummary:
        return self.scheduler.run(until=until, max_passes=max_passes)

    def print_status(self) -> None:
        """Print a compact status of the loop.

        Shows the virtual time and phase, the number of queued entries per
        queue, the next timer due time (if any) and the registered sources:
          name | pending
        """
        s = self.scheduler
        counts = s.pending_counts()
        total = sum(counts.values())

        print(f"Status at t={s.now:g} ({s.phase.value}): {total} callback(s) queued")
        next_due = s.next_timer_due()
        if next_due is not None:
            print(f"Next timer: t={next_due:g}")

        print("Queues:")
        for queue, count in counts.items():
            print(f"{queue:>10} | {count}")

        print("Sources:")
        for name, source in self.sources.items():
            print(f"{name:>10} | {'pending' if source.has_pending() else 'idle'}")
