"""Demo: load scenarios from a YAML file, run them and print what they logged."""
import argparse
import logging
import sys

from .errors import RunHalted
from .scenario import ScenarioBook


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="ticksim", description="Run event-loop scenarios on a virtual clock")
    parser.add_argument("path", help="scenario YAML file or directory")
    parser.add_argument("--scenario", "-s", action="append", help="run only this scenario (repeatable)")
    parser.add_argument("--verbose", "-v", action="store_true", help="log every callback")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    book = ScenarioBook.from_yaml(args.path)
    names = args.scenario or list(book.scenarios)

    failures = 0
    for name in names:
        scenario = book.get(name)
        if scenario is None:
            print(f"unknown scenario: {name}", file=sys.stderr)
            failures += 1
            continue

        print(f"{scenario.name}: {scenario.description}" if scenario.description else scenario.name)
        print("-" * 60)
        try:
            summary = scenario.run()
        except RunHalted as exc:
            summary = exc.summary
            print(f"HALTED: {exc}")
        except Exception as exc:
            # callback failure or bad step; later scenarios still run
            summary = getattr(exc, "summary", None)
            print(f"FAILED: {exc!r}")
        if summary is None:
            failures += 1
            print("MISMATCH before the loop started")
            print("=" * 60)
            continue
        for effect in summary.effects:
            print(effect)
        status = "OK" if summary.error is None and scenario.matches(summary) else "MISMATCH"
        if status != "OK":
            failures += 1
        print(f"{status} after {summary.passes} pass(es), t={summary.final_time:g}")
        print("=" * 60)

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
