"""
Base Workload Interface for clbench.

A workload owns its host-side data and knows how to drive one iteration of
the timed loop on a bound DeviceSession.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..device import DeviceSession
from ..kernels import KernelSource, load_kernel_source, resolve_kernel_path


class Workload(ABC):
    """
    Abstract base class for benchmark workloads.

    Lifecycle:
    - setup(): host-side allocation and kernel source loading (no device work)
    - bind(): device buffers, program build and kernel arguments
    - step()/check(): one iteration of the timed loop
    """

    name: str = "workload"
    kernel_file: str = ""
    kernel_name: str = ""

    def __init__(self) -> None:
        self.source: Optional[KernelSource] = None
        self.session: Optional[DeviceSession] = None
        self.kernel = None

    def load_source(self, kernel_dir: Optional[Union[str, Path]] = None) -> KernelSource:
        self.source = load_kernel_source(resolve_kernel_path(self.kernel_file, kernel_dir))
        return self.source

    @abstractmethod
    def setup(self, kernel_dir: Optional[Union[str, Path]] = None) -> None:
        """
        Prepare host data and load the kernel source.

        Raises:
            KernelLoadError / ImageLoadError on host-side failures.
        """
        raise NotImplementedError

    @abstractmethod
    def bind(self, session: DeviceSession) -> None:
        """Create device resources on ``session`` and bind kernel arguments."""
        raise NotImplementedError

    @abstractmethod
    def step(self) -> None:
        """Upload inputs, dispatch the kernel and download the output."""
        raise NotImplementedError

    @abstractmethod
    def check(self) -> bool:
        """Return True when the last downloaded output is correct."""
        raise NotImplementedError

    def summary(self) -> Dict[str, Any]:
        return {"name": self.name, "kernel": self.kernel_name}

    def finish(self) -> None:
        """Hook run after the timed loop, before teardown."""
        return None
