"""Declarative scenarios loaded from YAML.

A scenario file describes what a "main script" registers and what the loop is
expected to log:

    name: next-tick
    config:
      min_timer_delay: 1
    scenarios:
      - name: scenario-1
        steps:
          - timer: {delay: 0, log: "{elapsed:g}ms have passed since I was scheduled"}
          - immediate: "immediate"
          - microtask: {log: "Next tick cb {foo}"}
          - set: {foo: 2}
        expect:
          - "Next tick cb 2"
          - "immediate"
          - "1ms have passed since I was scheduled"

Step kinds are `timer`, `immediate`, `io`, `microtask`, `pending`, `close`
(each registers a callback), `set` (assign scenario variables) and `log`
(record a message right away). A callback step's value is either its log
message or a mapping with:

- `log`: message, formatted with the scenario variables plus `now` and
  `elapsed` (time since the callback was registered)
- `delay` (timer), `latency` (io; omitted means resolved by `mark_ready`),
  `file` (io read through the engine's "files" source)
- `consume`: virtual time the callback spends busy
- `repeat`: register the step that many times
- `id`: name the handle (microtasks have none); `cancel`: id of a handle to cancel when run
- `then`: nested steps registered when the callback runs
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .config import SchedulerConfig
from .engine import LoopEngine
from .entry import RunSummary
from .errors import InvalidArgument
from .handle import Handle

CALLBACK_KINDS = ("timer", "immediate", "io", "microtask", "pending", "close")
STEP_KINDS = CALLBACK_KINDS + ("set", "log")
_OPTIONS = {"log", "delay", "latency", "file", "consume", "repeat", "id", "cancel", "then"}


@dataclass
class Step:
    kind: str
    message: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)
    children: List["Step"] = field(default_factory=list)

    @property
    def repeat(self) -> int:
        return self.options.get("repeat", 1)

    @classmethod
    def parse(cls, raw: Any) -> "Step":
        if not isinstance(raw, Mapping) or len(raw) != 1:
            raise InvalidArgument(f"a step must be a single-key mapping, got {raw!r}")
        kind, body = next(iter(raw.items()))
        if kind not in STEP_KINDS:
            raise InvalidArgument(f"unknown step kind {kind!r}")

        if kind == "set":
            if not isinstance(body, Mapping):
                raise InvalidArgument("'set' expects a mapping of variables")
            return cls(kind, options=dict(body))
        if kind == "log":
            return cls(kind, message=str(body))

        if body is None:
            body = {}
        elif not isinstance(body, Mapping):
            body = {"log": body}
        unknown = sorted(set(body) - _OPTIONS)
        if unknown:
            raise InvalidArgument(f"unknown option(s) for {kind}: {', '.join(unknown)}")
        if kind == "microtask" and "id" in body:
            raise InvalidArgument("microtasks return no handle and cannot take an 'id'")
        options = {k: v for k, v in body.items() if k not in ("log", "then")}
        repeat = options.get("repeat", 1)
        if isinstance(repeat, bool) or not isinstance(repeat, int) or repeat < 1:
            raise InvalidArgument("repeat must be a positive integer")
        message = body.get("log")
        children = [cls.parse(child) for child in body.get("then") or []]
        return cls(kind, message=None if message is None else str(message), options=options, children=children)


@dataclass
class Scenario:
    """A named list of main-script steps plus the expected log."""

    name: str
    steps: List[Step] = field(default_factory=list)
    expect: Optional[List[str]] = None
    config: SchedulerConfig = field(default_factory=SchedulerConfig)
    description: str = ""
    variables: Dict[str, Any] = field(default_factory=dict)
    base_dir: Path = field(default_factory=Path.cwd)
    file_latency: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None, base_dir: Optional[Path] = None) -> "Scenario":
        name = data.get("name")
        if not name:
            raise InvalidArgument("scenario entry missing 'name'")
        merged = dict(defaults or {})
        merged.update(data.get("config") or {})
        file_latency = merged.pop("file_latency", 0.0)
        expect = data.get("expect")
        return cls(
            name=name,
            steps=[Step.parse(raw) for raw in data.get("steps") or []],
            expect=None if expect is None else [str(m) for m in expect],
            config=SchedulerConfig.from_dict(merged),
            description=data.get("description", "") or "",
            variables=dict(data.get("vars") or {}),
            base_dir=base_dir or Path.cwd(),
            file_latency=file_latency,
        )

    def build_engine(self) -> LoopEngine:
        return LoopEngine(config=self.config, file_latency=self.file_latency)

    def play(self, engine: LoopEngine) -> Dict[str, Handle]:
        """Execute the main-script steps against `engine` (without running it)."""
        env = dict(self.variables)
        handles: Dict[str, Handle] = {}
        for step in self.steps:
            self._register(engine, step, env, handles)
        return handles

    def run(self, engine: Optional[LoopEngine] = None) -> RunSummary:
        engine = engine or self.build_engine()
        self.play(engine)
        return engine.run()

    def matches(self, summary: RunSummary) -> bool:
        return self.expect is None or summary.messages == self.expect

    def _format(self, message: str, env: Dict[str, Any], now: float, elapsed: float) -> str:
        return message.format(now=now, elapsed=elapsed, **env)

    def _register(self, engine: LoopEngine, step: Step, env: Dict[str, Any], handles: Dict[str, Handle]) -> None:
        scheduler = engine.scheduler
        if step.kind == "set":
            env.update(step.options)
            return
        if step.kind == "log":
            engine.log(self._format(step.message, env, scheduler.now, 0.0))
            return

        for _ in range(step.repeat):
            callback = self._make_callback(engine, step, env, handles, scheduler.now)
            opts = step.options
            if step.kind == "timer":
                handle = scheduler.schedule_timer(callback, opts.get("delay", 0))
            elif step.kind == "immediate":
                handle = scheduler.schedule_immediate(callback)
            elif step.kind == "microtask":
                handle = None
                scheduler.schedule_microtask(callback)
            elif step.kind == "pending":
                handle = scheduler.schedule_pending(callback)
            elif step.kind == "close":
                handle = scheduler.schedule_close(callback)
            elif "file" in opts:
                handle = engine.read_file(self.base_dir / opts["file"], callback)
            else:
                handle = scheduler.schedule_io(callback, opts.get("latency"))
            if "id" in opts:
                handles[opts["id"]] = handle

    def _make_callback(self, engine, step, env, handles, registered_at):
        scheduler = engine.scheduler

        def _callback(*_io_result):
            if step.message is not None:
                now = scheduler.now
                engine.log(self._format(step.message, env, now, now - registered_at))
            if step.options.get("consume"):
                scheduler.consume(step.options["consume"])
            target = step.options.get("cancel")
            if target is not None:
                if target not in handles:
                    raise KeyError(f"no handle named {target!r}")
                handles[target].cancel()
            for child in step.children:
                self._register(engine, child, env, handles)

        _callback.__qualname__ = f"{self.name}:{step.kind}"
        return _callback


class ScenarioBook:
    """All scenarios of one YAML file (or directory of YAML files)."""

    def __init__(self, name: str):
        self.name = name
        self.scenarios: Dict[str, Scenario] = {}

    def add(self, scenario: Scenario) -> None:
        if scenario.name in self.scenarios:
            raise ValueError(f"Scenario '{scenario.name}' is already registered in '{self.name}'")
        self.scenarios[scenario.name] = scenario

    def get(self, name: str) -> Optional[Scenario]:
        return self.scenarios.get(name)

    def __iter__(self):
        return iter(self.scenarios.values())

    def __len__(self) -> int:
        return len(self.scenarios)

    def __repr__(self) -> str:
        return f"ScenarioBook(name='{self.name}', scenarios={list(self.scenarios)})"

    @classmethod
    def from_yaml(cls, filepath: Union[str, Path]) -> "ScenarioBook":
        """Load scenarios from a YAML file or a directory of YAML files.

        Directory entries ending in `.yaml`/`.yml` are loaded in alphabetical
        order and merged; the first non-empty `name` wins. A file-level
        `config` mapping applies to every scenario in that file and can be
        overridden per scenario.
        """
        p = Path(filepath)
        if not p.exists():
            raise FileNotFoundError(f"Scenario YAML path not found: {filepath}")
        if p.is_dir():
            files = [c for c in sorted(p.iterdir()) if c.suffix.lower() in (".yml", ".yaml") and c.is_file()]
        else:
            files = [p]

        book = None
        for f in files:
            with open(f, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
            if book is None:
                book = cls(data.get("name") or f.stem)
            defaults = data.get("config") or {}
            for entry in data.get("scenarios", []) or []:
                book.add(Scenario.from_dict(entry, defaults=defaults, base_dir=f.parent))

        if book is None:
            return cls(p.name)
        return book
