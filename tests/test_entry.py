from ticksim.entry import (
    CallbackKind,
    EntryStatus,
    IOCompletionEntry,
    Phase,
    RunSummary,
    SideEffect,
    TimerEntry,
)


def named_callback():
    return "ran"


def test_entry_invoke_marks_fired():
    entry = TimerEntry(named_callback, (), 3, 10.0)
    assert entry.queued
    assert entry.invoke() == "ran"
    assert entry.status is EntryStatus.FIRED
    assert entry.describe() == "timer#3 named_callback"
    assert entry.sort_key() == (10.0, 3)


def test_io_entry_readiness():
    entry = IOCompletionEntry(named_callback, (), 0, None)
    assert not entry.is_ready(100)
    entry.ready_at = 5.0
    assert not entry.is_ready(4.9)
    assert entry.is_ready(5.0)


def test_side_effect_str():
    effect = SideEffect(2.0, Phase.CHECK, CallbackKind.IMMEDIATE, "immediate")
    assert str(effect) == "[2] check   immediate immediate"


def test_run_summary_views():
    effects = [
        SideEffect(0.0, Phase.IDLE, CallbackKind.MICROTASK, "tick"),
        SideEffect(0.0, Phase.CHECK, CallbackKind.IMMEDIATE, "imm"),
    ]
    summary = RunSummary(effects=effects, passes=1, drained=True)
    assert summary.messages == ["tick", "imm"]
    assert summary.by_kind(CallbackKind.IMMEDIATE) == [effects[1]]
    assert summary.error is None
