"""Simple demo runner for the phase scheduler."""
from ticksim import LoopEngine

def main():
    engine = LoopEngine()
    s = engine.scheduler
    # Register callbacks the way a main script would
    s.schedule_timer(s.log, 0, "timeout")
    s.schedule_timer(s.log, 1.5, "later timeout")
    s.schedule_immediate(s.log, "immediate")
    s.schedule_microtask(s.log, "next tick")
    s.schedule_io(s.log, 0.5, "io done")

    print("Running loop...")
    engine.print_status()
    summary = engine.run()
    for effect in summary.effects:
        print(effect)
    print(f"Drained after {summary.passes} pass(es) at t={summary.final_time:g}")

if __name__ == "__main__":
    main()
