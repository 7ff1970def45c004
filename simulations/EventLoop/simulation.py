"""Timers, check and poll phases around a slow I/O operation.

`EventLoopSimulation` reproduces a program that registers a timer, an
immediate and a file read whose completion callback keeps the loop busy for a
while. Depending on the timer threshold the timer fires before or after the
read completes, while the immediate always runs first: Poll finds nothing
ready on the first pass and gives way to Check.
"""
from __future__ import annotations

from pathlib import Path
import logging
from typing import Optional, Union

from ticksim.config import SchedulerConfig
from ticksim.engine import LoopEngine

_logger = logging.getLogger(__name__)

HALF_TXT = Path(__file__).resolve().parent / "half.txt"


class EventLoopSimulation(LoopEngine):
    """Usage example:
        sim = EventLoopSimulation()
        sim.setup(timeout=30)
        sim.run().messages  # ['immediate', 'First here', '30ms have passed since I was scheduled']
    """

    def __init__(self, config: Optional[SchedulerConfig] = None, read_latency: float = 10.0, busy_time: float = 10.0):
        super().__init__(config=config, file_latency=read_latency)
        self.busy_time = busy_time

    def some_async_operation(self, callback, path: Union[str, Path] = HALF_TXT):
        return self.read_file(path, callback)

    def setup(self, timeout: float = 0.0, path: Union[str, Path] = HALF_TXT) -> None:
        scheduled = self.scheduler.now

        def _on_timeout():
            self.log(f"{self.scheduler.now - scheduled:g}ms have passed since I was scheduled")

        def _on_read(error, _data):
            if error is not None:
                _logger.error("reading %s failed: %s", path, error)
            self.log("First here")
            # do something that takes a while
            self.scheduler.consume(self.busy_time)

        self.scheduler.schedule_timer(_on_timeout, timeout)
        self.scheduler.schedule_immediate(self.log, "immediate")
        self.some_async_operation(_on_read, path)
