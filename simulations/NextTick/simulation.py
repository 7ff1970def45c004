"""Next-tick (microtask) scenarios.

`NextTickSimulation` reproduces three small programs showing that callbacks
queued with "next tick" run after the main script finishes but before the
loop enters any phase, and again after every callback the loop executes:

1. a 0 ms timer, an immediate, and a next-tick callback that reads a variable
   assigned after it was queued;
2. the same, with three next-tick callbacks queued from inside the immediate;
3. the same as 1, with a file read started from the next-tick callback.

Each `setup_*` method plays the program's main script; call `run()` after it.
"""
from __future__ import annotations

from pathlib import Path
import logging
from typing import Any, Callable, Optional, Union

from ticksim.config import SchedulerConfig
from ticksim.engine import LoopEngine

_logger = logging.getLogger(__name__)

HALF_TXT = Path(__file__).resolve().parent / "half.txt"


class NextTickSimulation(LoopEngine):
    """Usage example:
        sim = NextTickSimulation()
        sim.setup_scenario_two()
        summary = sim.run()
        summary.messages  # ['Next tick cb 2', 'immediate', 'ticking away...', ...]
    """

    def __init__(self, config: Optional[SchedulerConfig] = None, file_latency: float = 5.0):
        super().__init__(config=config, file_latency=file_latency)
        self.foo: Any = None

    def some_async_operation(self, callback: Callable[[], Any]) -> None:
        self.scheduler.schedule_microtask(callback)

    def schedule_timeout(self, delay: float = 0.0):
        scheduled = self.scheduler.now

        def _on_timeout():
            self.log(f"{self.scheduler.now - scheduled:g}ms have passed since I was scheduled")

        return self.scheduler.schedule_timer(_on_timeout, delay)

    def _next_tick_cb(self) -> None:
        self.log(f"Next tick cb {self.foo}")

    def setup_scenario_one(self) -> None:
        self.foo = None
        self.schedule_timeout(0)
        self.scheduler.schedule_immediate(self.log, "immediate")
        self.some_async_operation(self._next_tick_cb)
        # assigned after queuing: the callback still sees it
        self.foo = 2

    def setup_scenario_two(self, ticks: int = 3) -> None:
        self.foo = None
        self.schedule_timeout(0)

        def _immediate():
            self.log("immediate")
            for _ in range(ticks):
                self.scheduler.schedule_microtask(self.log, "ticking away...")

        self.scheduler.schedule_immediate(_immediate)
        self.some_async_operation(self._next_tick_cb)
        self.foo = 2

    def setup_scenario_three(self, path: Union[str, Path] = HALF_TXT) -> None:
        self.foo = None
        self.schedule_timeout(0)
        self.scheduler.schedule_immediate(self.log, "immediate")

        def _on_read(error, _data):
            if error is not None:
                _logger.error("reading %s failed: %s", path, error)
            self.log("Finished reading")

        def _next_tick():
            self._next_tick_cb()
            self.read_file(path, _on_read)

        self.some_async_operation(_next_tick)
        self.foo = 2
