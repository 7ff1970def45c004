import pytest

from ticksim.config import SchedulerConfig
from ticksim.entry import CallbackKind, Phase
from ticksim.errors import StarvationError
from ticksim.scheduler import PhaseScheduler


def chain(s, length, prefix="m"):
    """Return a microtask that logs and re-queues itself `length` times in total."""
    def step(i):
        s.log(f"{prefix}{i}")
        if i < length:
            s.schedule_microtask(step, i + 1)
    return step


class TestMicrotaskDraining:
    def test_main_script_microtasks_run_first(self):
        s = PhaseScheduler()
        s.schedule_timer(s.log, 0, "timer")
        s.schedule_immediate(s.log, "immediate")
        s.schedule_microtask(s.log, "tick")
        summary = s.run()
        assert summary.messages == ["tick", "immediate", "timer"]
        assert summary.effects[0].kind is CallbackKind.MICROTASK
        assert summary.effects[0].phase is Phase.IDLE

    def test_microtask_from_timer_runs_before_next_timer(self):
        s = PhaseScheduler()

        def t1():
            s.log("t1")
            s.schedule_microtask(s.log, "m1")

        s.schedule_timer(t1, 5)
        s.schedule_timer(s.log, 5, "t2")
        assert s.run().messages == ["t1", "m1", "t2"]

    def test_microtask_keeps_phase_of_its_callback(self):
        s = PhaseScheduler()
        s.schedule_immediate(lambda: s.schedule_microtask(s.log, "m"))
        effect = s.run().effects[0]
        assert effect.phase is Phase.CHECK
        assert effect.kind is CallbackKind.MICROTASK

    def test_nested_microtasks_are_fifo(self):
        s = PhaseScheduler()

        def m1():
            s.log("m1")
            s.schedule_microtask(s.log, "m3")

        s.schedule_microtask(m1)
        s.schedule_microtask(s.log, "m2")
        assert s.run().messages == ["m1", "m2", "m3"]

    @pytest.mark.parametrize("phase_call", ["timer", "io", "immediate", "close"])
    def test_microtasks_drain_in_every_phase(self, phase_call):
        s = PhaseScheduler()

        def cb(name):
            s.log(name)
            s.schedule_microtask(s.log, f"{name}-tick")

        if phase_call == "timer":
            s.schedule_timer(cb, 1, "a")
            s.schedule_timer(cb, 1, "b")
        elif phase_call == "io":
            s.schedule_io(cb, 1, "a")
            s.schedule_io(cb, 1, "b")
        elif phase_call == "immediate":
            s.schedule_immediate(cb, "a")
            s.schedule_immediate(cb, "b")
        else:
            s.schedule_close(cb, "a")
            s.schedule_close(cb, "b")
        assert s.run().messages == ["a", "a-tick", "b", "b-tick"]


class TestStarvation:
    def test_chain_up_to_the_cap(self):
        s = PhaseScheduler(SchedulerConfig(max_microtasks_per_drain=10))

        def start():
            s.log("imm")
            s.schedule_microtask(chain(s, 10), 1)

        s.schedule_immediate(start)
        s.schedule_immediate(s.log, "after")
        summary = s.run()
        assert summary.messages == ["imm"] + [f"m{i}" for i in range(1, 11)] + ["after"]
        assert summary.drained

    def test_chain_beyond_the_cap(self):
        s = PhaseScheduler(SchedulerConfig(max_microtasks_per_drain=10))

        def start():
            s.log("imm")
            s.schedule_microtask(chain(s, 11), 1)

        s.schedule_immediate(start)
        s.schedule_immediate(s.log, "after")
        with pytest.raises(StarvationError) as info:
            s.run()
        summary = info.value.summary
        assert summary.messages == ["imm"] + [f"m{i}" for i in range(1, 11)]
        assert summary.error is info.value
        assert not summary.drained

    def test_unbounded_recursion_is_reported(self):
        s = PhaseScheduler()

        def again():
            s.schedule_microtask(again)

        s.schedule_microtask(again)
        s.schedule_timer(s.log, 0, "starved")
        with pytest.raises(StarvationError):
            s.run()
        assert not s.running

    def test_cap_is_per_drain(self):
        """Separate drains each get the full budget."""
        s = PhaseScheduler(SchedulerConfig(max_microtasks_per_drain=3))

        def start(name):
            s.schedule_microtask(chain(s, 3, prefix=name), 1)

        s.schedule_immediate(start, "a")
        s.schedule_immediate(start, "b")
        assert s.run().messages == ["a1", "a2", "a3", "b1", "b2", "b3"]
