"""Scheduler configuration.

All times are virtual and unit-less; the bundled scenarios read them as
milliseconds. A config can be built in code, from a mapping, or from a YAML
file:

    scheduler:
      tick_duration: 1
      min_timer_delay: 1
      max_microtasks_per_drain: 1000
      poll_budget: 1000
      max_poll_callbacks: 1024

The `scheduler:` wrapper is optional.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .errors import InvalidArgument


@dataclass(frozen=True)
class SchedulerConfig:
    # virtual time consumed by one full pass over the phases
    tick_duration: float = 1.0
    # timers never fire sooner than this after registration; 0 lets a 0-delay
    # timer fire in the very next Timers phase
    min_timer_delay: float = 1.0
    # microtasks allowed in a single drain before StarvationError
    max_microtasks_per_drain: int = 1000
    # longest single clock jump while Poll blocks
    poll_budget: float = 1000.0
    # I/O callbacks executed per Poll phase; the rest wait for the next pass
    max_poll_callbacks: int = 1024

    def __post_init__(self):
        if self.tick_duration <= 0:
            raise InvalidArgument("tick_duration must be > 0")
        if self.min_timer_delay < 0:
            raise InvalidArgument("min_timer_delay must be >= 0")
        if self.poll_budget <= 0:
            raise InvalidArgument("poll_budget must be > 0")
        for name in ("max_microtasks_per_drain", "max_poll_callbacks"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise InvalidArgument(f"{name} must be a positive integer")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SchedulerConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise InvalidArgument("scheduler config must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidArgument(f"unknown scheduler config keys: {', '.join(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, filepath: Union[str, Path]) -> "SchedulerConfig":
        p = Path(filepath)
        if not p.exists():
            raise FileNotFoundError(f"Scheduler config not found: {filepath}")
        with open(p, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        if isinstance(data, Mapping) and "scheduler" in data:
            data = data["scheduler"]
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
