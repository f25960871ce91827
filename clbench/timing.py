# clbench/timing.py
"""
Timed repetition loop: run an operation until its check fails or the
iteration budget is exhausted, then report completed iterations and average
latency over the iterations that actually ran.
"""
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Callable


@dataclass(frozen=True)
class LoopStats:
    iterations: int
    completed: int
    elapsed_s: float
    success: bool

    @property
    def avg_latency_us(self) -> float:
        if self.completed <= 0:
            return 0.0
        return self.elapsed_s * 1e6 / self.completed

    @property
    def throughput_fps(self) -> float:
        if self.completed <= 0 or self.elapsed_s <= 0.0:
            return 0.0
        return self.completed / self.elapsed_s


def run_timed_loop(
    step: Callable[[], Any],
    check: Callable[[], bool],
    iterations: int,
    clock: Callable[[], float] = perf_counter,
) -> LoopStats:
    """
    Repeat `step()` then `check()` up to `iterations` times:
      - a falsy `check()` ends the loop right away; only iterations whose check passed count as completed
      - the clock is read once before the first step and once after the loop exits
    Exceptions from `step` or `check` propagate unchanged.
    """
    if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 0:
        raise ValueError(f"iterations must be a non-negative integer, got {iterations!r}")
    completed = 0
    success = True
    t0 = clock()
    for _ in range(iterations):
        step()
        if not check():
            success = False
            break
        completed += 1
    elapsed = clock() - t0
    return LoopStats(iterations=iterations, completed=completed, elapsed_s=elapsed, success=success)


__all__ = ["LoopStats", "run_timed_loop"]
