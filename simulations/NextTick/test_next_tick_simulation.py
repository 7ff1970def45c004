from pathlib import Path

from simulations.NextTick.simulation import NextTickSimulation
from ticksim.config import SchedulerConfig
from ticksim.entry import CallbackKind, Phase
from ticksim.scenario import ScenarioBook

TIMEOUT_MSG = "1ms have passed since I was scheduled"


def test_scenario_one():
    sim = NextTickSimulation()
    sim.setup_scenario_one()
    summary = sim.run()
    assert summary.messages == ["Next tick cb 2", "immediate", TIMEOUT_MSG]
    first = summary.effects[0]
    assert first.kind is CallbackKind.MICROTASK
    assert first.phase is Phase.IDLE


def test_scenario_two():
    sim = NextTickSimulation()
    sim.setup_scenario_two()
    summary = sim.run()
    assert summary.messages == [
        "Next tick cb 2",
        "immediate",
        "ticking away...",
        "ticking away...",
        "ticking away...",
        TIMEOUT_MSG,
    ]
    # the ticks drain inside the Check phase, right after the immediate
    assert all(e.phase is Phase.CHECK for e in summary.effects[1:5])


def test_scenario_three_reads_after_timer():
    sim = NextTickSimulation(file_latency=5)
    sim.setup_scenario_three()
    summary = sim.run()
    assert summary.messages == ["Next tick cb 2", "immediate", TIMEOUT_MSG, "Finished reading"]
    assert summary.effects[-1].time == 5.0
    assert summary.effects[-1].phase is Phase.POLL


def test_scenario_three_missing_file_still_completes(tmp_path):
    sim = NextTickSimulation()
    sim.setup_scenario_three(path=tmp_path / "missing.txt")
    assert sim.run().messages[-1] == "Finished reading"


def test_timer_first_without_clamp():
    """With no minimum timer delay the 0 ms timer wins the top-level race."""
    sim = NextTickSimulation(config=SchedulerConfig(min_timer_delay=0))
    sim.setup_scenario_one()
    assert sim.run().messages == ["Next tick cb 2", "0ms have passed since I was scheduled", "immediate"]


def test_yaml_scenarios_match():
    book = ScenarioBook.from_yaml(Path(__file__).resolve().parent / "scenarios.yaml")
    assert len(book) == 3
    for scenario in book:
        summary = scenario.run()
        assert scenario.matches(summary), (scenario.name, summary.messages)
