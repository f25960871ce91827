"""Test selection and the setup → session → timed loop → teardown sequence.

Failures come back as an ``Outcome`` with an explicit status instead of
unwinding to the caller:

  * IO_ERROR      host-side setup failed (kernel file, input image); no device work was done
  * DEVICE_ERROR  a compute API call failed; every handle acquired so far was released
  * FAILED        the loop ran and an output check failed
  * PASSED        every iteration of the budget passed its check
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

from rich.console import Console
from rich.markup import escape

from . import config as _cfg
from .device import DeviceSession
from .errors import DeviceError, ImageLoadError, KernelLoadError
from .timing import LoopStats, run_timed_loop
from .utils.logging import get_logger
from .workloads import ImageMorphologyWorkload, VectorAddWorkload, Workload

_log = get_logger(__name__)

DEFAULT_TEST = 0


class Status(Enum):
    PASSED = "passed"
    FAILED = "failed"
    DEVICE_ERROR = "device_error"
    IO_ERROR = "io_error"


@dataclass
class RunOptions:
    iterations: Optional[int] = None
    kernel_dir: Optional[Union[str, Path]] = None
    image_path: Optional[Union[str, Path]] = None
    op: Optional[str] = None
    platform_index: Optional[int] = None
    device_index: Optional[int] = None
    show: bool = False

    def resolved_iterations(self) -> int:
        n = int(self.iterations if self.iterations is not None else _cfg.get("CLBENCH_ITERATIONS"))
        if n < 0:
            raise ValueError(f"iteration budget must be non-negative, got {n}")
        return n


@dataclass
class Outcome:
    test_id: int
    workload: str
    status: Status
    stats: Optional[LoopStats] = None
    error: Optional[str] = None
    code: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is Status.PASSED


def _vector(options: RunOptions) -> Workload:
    return VectorAddWorkload()


def _image(options: RunOptions) -> Workload:
    return ImageMorphologyWorkload(image_path=options.image_path, op=options.op, show=options.show)


TESTS: Dict[int, Tuple[str, Callable[[RunOptions], Workload]]] = {
    0: ("vector addition", _vector),
    1: ("image processing", _image),
}


def resolve_test(test_id: Optional[int]) -> int:
    """Map a requested test id onto a known one; unknown ids fall back to vector addition."""
    if test_id is None:
        return DEFAULT_TEST
    if test_id not in TESTS:
        _log.warning("Unknown test id %s, running %s test", test_id, TESTS[DEFAULT_TEST][0])
        return DEFAULT_TEST
    return test_id


def build_workload(test_id: int, options: RunOptions) -> Workload:
    _, factory = TESTS[resolve_test(test_id)]
    return factory(options)


def report(stats: LoopStats, console: Console) -> None:
    console.print(f"Avg time: {stats.avg_latency_us:.6f} us ({stats.throughput_fps:.6f} FPS)")
    console.print(f"Number of iterations: {stats.completed}")
    console.print("Test passed" if stats.success else "Test failed")


def run_test(
    test_id: Optional[int] = None,
    options: Optional[RunOptions] = None,
    console: Optional[Console] = None,
) -> Outcome:
    options = options or RunOptions()
    console = console or Console()
    tid = resolve_test(test_id)
    label, _ = TESTS[tid]
    iterations = options.resolved_iterations()
    workload = build_workload(tid, options)
    console.print(f"Running {label} test...")

    try:
        workload.setup(options.kernel_dir)
    except (KernelLoadError, ImageLoadError) as e:
        _log.error("%s", e)
        console.print(f"[red]{escape(str(e))}[/red]")
        return Outcome(tid, workload.name, Status.IO_ERROR, error=str(e))

    try:
        with DeviceSession(options.platform_index, options.device_index) as session:
            workload.bind(session)
            stats = run_timed_loop(workload.step, workload.check, iterations)
    except DeviceError as e:
        _log.error("%s", e)
        console.print(f"[red]Device error:[/red] {escape(str(e))}")
        return Outcome(tid, workload.name, Status.DEVICE_ERROR, error=str(e), code=e.code,
                       details=workload.summary())

    report(stats, console)
    workload.finish()
    console.print("Done")
    status = Status.PASSED if stats.success else Status.FAILED
    return Outcome(tid, workload.name, status, stats=stats, details=workload.summary())


__all__ = [
    "Status",
    "RunOptions",
    "Outcome",
    "TESTS",
    "resolve_test",
    "build_workload",
    "run_test",
]
