import pytest

from ticksim.errors import AlreadyCancelled, AlreadyFired, InvalidArgument
from ticksim.handle import CancelOutcome
from ticksim.scheduler import PhaseScheduler


class TestCancel:
    def test_cancel_timer_before_due(self):
        s = PhaseScheduler()
        handle = s.schedule_timer(s.log, 10, "never")
        s.schedule_timer(s.log, 20, "kept")
        assert handle.cancel() is CancelOutcome.CANCELLED
        assert handle.cancelled()
        assert s.pending_counts()["timers"] == 1
        assert s.run().messages == ["kept"]

    def test_cancel_after_fire(self):
        s = PhaseScheduler()
        handle = s.schedule_timer(s.log, 1, "fired")
        first = s.run()
        assert handle.fired()
        assert handle.cancel() is CancelOutcome.ALREADY_FIRED
        assert first.messages == ["fired"]
        assert s.run().messages == []

    def test_cancel_after_fire_strict(self):
        s = PhaseScheduler()
        handle = s.schedule_immediate(lambda: None)
        s.run()
        with pytest.raises(AlreadyFired):
            handle.cancel(strict=True)

    def test_cancel_twice(self):
        s = PhaseScheduler()
        handle = s.schedule_immediate(lambda: None)
        handle.cancel()
        assert handle.cancel() is CancelOutcome.ALREADY_CANCELLED
        with pytest.raises(AlreadyCancelled):
            handle.cancel(strict=True)

    def test_cancel_later_timer_from_same_timers_phase(self):
        s = PhaseScheduler()
        handles = {}

        def first():
            s.log("first")
            handles["second"].cancel()

        s.schedule_timer(first, 5)
        handles["second"] = s.schedule_timer(s.log, 5, "second")
        assert s.run().messages == ["first"]
        assert handles["second"].cancelled()

    def test_cancel_later_immediate_from_same_check_batch(self):
        s = PhaseScheduler()
        handles = {}
        s.schedule_immediate(lambda: handles["b"].cancel())
        handles["b"] = s.schedule_immediate(s.log, "b")
        s.schedule_immediate(s.log, "c")
        assert s.run().messages == ["c"]

    def test_cancel_io(self):
        s = PhaseScheduler()
        handle = s.schedule_io(s.log, 5, "io")
        handle.cancel()
        summary = s.run()
        assert summary.messages == []
        assert summary.drained

    def test_cancel_unresolved_io_prevents_stall(self):
        s = PhaseScheduler()
        handle = s.schedule_io(s.log, None, "io")
        s.schedule_immediate(handle.cancel)
        assert s.run().drained

    def test_cancel_pending_and_close(self):
        s = PhaseScheduler()
        s.schedule_pending(s.log, "pending").cancel()
        s.schedule_close(s.log, "close").cancel()
        s.schedule_immediate(s.log, "imm")
        assert s.run().messages == ["imm"]

    def test_handle_from_other_scheduler(self):
        a = PhaseScheduler()
        b = PhaseScheduler()
        handle = a.schedule_immediate(lambda: None)
        with pytest.raises(InvalidArgument):
            b.cancel(handle)
