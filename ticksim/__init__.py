"""ticksim package entry point"""

__all__ = [
    "PhaseScheduler", "LoopEngine", "SchedulerConfig", "Scenario", "ScenarioBook",
    "Phase", "CallbackKind", "RunSummary", "SideEffect", "CancelOutcome",
    "SideEffectSink", "IOSource", "FileReadSource",
    "SchedulerError", "InvalidArgument", "StarvationError", "StalledError", "AlreadyFired", "AlreadyCancelled",
]

from .scheduler import PhaseScheduler
from .engine import LoopEngine
from .config import SchedulerConfig
from .scenario import Scenario, ScenarioBook
from .entry import Phase, CallbackKind, RunSummary, SideEffect
from .handle import CancelOutcome
from .io import SideEffectSink, IOSource, FileReadSource
from .errors import SchedulerError, InvalidArgument, StarvationError, StalledError, AlreadyFired, AlreadyCancelled

__version__ = "0.1.0"
