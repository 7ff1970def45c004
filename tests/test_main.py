import textwrap

from ticksim.__main__ import main


SCENARIOS = textwrap.dedent("""
    name: cli
    scenarios:
      - name: good
        steps:
          - immediate: "immediate"
        expect: ["immediate"]
      - name: bad
        steps:
          - immediate: "immediate"
        expect: ["something else"]
      - name: starving
        config: {max_microtasks_per_drain: 2}
        steps:
          - microtask: {log: "tick", repeat: 3}
      - name: broken
        steps:
          - immediate: {log: "before", cancel: nope}
""")


def test_runs_selected_scenario(tmp_path, capsys):
    path = tmp_path / "cli.yaml"
    path.write_text(SCENARIOS)
    assert main([str(path), "--scenario", "good"]) == 0
    out = capsys.readouterr().out
    assert "immediate" in out
    assert "OK after 1 pass(es)" in out


def test_mismatch_sets_exit_code(tmp_path, capsys):
    path = tmp_path / "cli.yaml"
    path.write_text(SCENARIOS)
    assert main([str(path), "-s", "bad"]) == 1
    assert "MISMATCH" in capsys.readouterr().out


def test_halted_run_is_reported(tmp_path, capsys):
    path = tmp_path / "cli.yaml"
    path.write_text(SCENARIOS)
    assert main([str(path), "-s", "starving"]) == 1
    out = capsys.readouterr().out
    assert "HALTED" in out
    assert "MISMATCH" in out


def test_unknown_scenario(tmp_path, capsys):
    path = tmp_path / "cli.yaml"
    path.write_text(SCENARIOS)
    assert main([str(path), "-s", "nope"]) == 1
    assert "unknown scenario: nope" in capsys.readouterr().err


def test_failing_callback_is_reported(tmp_path, capsys):
    """A callback error fails its scenario without stopping the others."""
    path = tmp_path / "cli.yaml"
    path.write_text(SCENARIOS)
    assert main([str(path), "-s", "broken", "-s", "good"]) == 1
    out = capsys.readouterr().out
    assert "FAILED: KeyError" in out
    assert "before" in out
    assert "MISMATCH after 1 pass(es)" in out
    assert "OK after 1 pass(es)" in out
