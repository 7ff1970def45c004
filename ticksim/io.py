"""I/O boundary of the scheduler.

The core never performs I/O itself. An operation registered with
`schedule_io(callback, latency=None)` stays unresolved until something calls
`SideEffectSink.mark_ready` on its handle. `IOSource` objects attached to a
scheduler are polled at the start of every Poll phase (and again after Poll
blocks) so they can resolve the operations they own.
"""
from __future__ import annotations

import abc
import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Union, TYPE_CHECKING

from .errors import InvalidArgument

if TYPE_CHECKING:
    from .handle import IOHandle
    from .scheduler import PhaseScheduler

_logger = logging.getLogger(__name__)


class SideEffectSink(abc.ABC):
    """Receiver of I/O completions."""

    @abc.abstractmethod
    def mark_ready(self, handle: "IOHandle", result: Any = None, delay: float = 0.0) -> None:
        """Make the operation behind `handle` pollable `delay` after now."""


class IOSource(abc.ABC):
    """Something that owns outstanding I/O operations and resolves them."""

    name: str = "source"

    @abc.abstractmethod
    def poll(self, sink: SideEffectSink, now: float) -> int:
        """Resolve whatever can be resolved; return how many were marked ready."""

    @abc.abstractmethod
    def has_pending(self) -> bool:
        """True while some submitted operation has not been marked ready."""


class FileReadSource(IOSource):
    """Reads files on behalf of callbacks, completing after `latency`.

    The read itself is synchronous (it happens when the source is polled);
    only its completion is deferred on the virtual clock. The completion
    callback receives `(error, data)`: `error` is the `OSError` raised by the
    read or None, `data` is bytes (or str when `encoding` is given).

        source = FileReadSource(latency=5)
        source.read_file(scheduler, "half.txt", on_read)
    """

    name = "files"

    def __init__(self, latency: float = 0.0):
        if latency < 0:
            raise InvalidArgument("latency must be >= 0")
        self.latency = latency
        self._requests: List[Tuple["IOHandle", Path, Optional[str]]] = []

    def read_file(self, scheduler: "PhaseScheduler", path: Union[str, Path], callback: Callable[[Optional[OSError], Any], Any], encoding: Optional[str] = None) -> "IOHandle":
        def _complete():
            error, data = handle.result
            return callback(error, data)

        _complete.__qualname__ = f"read_file({Path(path).name})"
        handle = scheduler.schedule_io(_complete, None)
        scheduler.attach_source(self)
        self._requests.append((handle, Path(path), encoding))
        return handle

    def poll(self, sink: SideEffectSink, now: float) -> int:
        requests, self._requests = self._requests, []
        resolved = 0
        for handle, path, encoding in requests:
            if handle.cancelled():
                continue
            error: Optional[OSError] = None
            data: Any = None
            try:
                data = path.read_text(encoding=encoding) if encoding else path.read_bytes()
            except OSError as exc:
                # delivered to the callback, like a failed read in a real runtime
                _logger.debug("read of %s failed: %s", path, exc)
                error = exc
            sink.mark_ready(handle, (error, data), delay=self.latency)
            resolved += 1
        return resolved

    def has_pending(self) -> bool:
        return any(not handle.cancelled() for handle, _p, _e in self._requests)
