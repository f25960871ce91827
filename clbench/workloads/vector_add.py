"""Vector addition workload: C = A + B with A[i] = i and B[i] = -i, so C sums to zero."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover
    cl = None  # type: ignore

from .. import config as _cfg
from ..device import DeviceSession
from ..utils.logging import get_logger
from .base import Workload

LIST_SIZE = 1024 * 1024

_log = get_logger(__name__)


def make_inputs(size: int = LIST_SIZE) -> tuple[np.ndarray, np.ndarray]:
    a = np.arange(size, dtype=np.int32)
    return a, -a


def sums_to_zero(out: np.ndarray) -> bool:
    return int(out.sum(dtype=np.int64)) == 0


class VectorAddWorkload(Workload):
    name = "vector_add"
    kernel_file = "vector_add_kernel.cl"
    kernel_name = "vector_add"

    def __init__(self, size: int = LIST_SIZE, local_size: Optional[int] = None):
        super().__init__()
        self.size = int(size)
        self.local_size = int(local_size if local_size is not None else _cfg.get("CLBENCH_LOCAL_SIZE"))
        self.a = self.b = self.out = None
        self.a_buf = self.b_buf = self.out_buf = None

    def setup(self, kernel_dir: Optional[Union[str, Path]] = None) -> None:
        _log.info("List size: %d", self.size)
        self.a, self.b = make_inputs(self.size)
        self.out = np.empty(self.size, dtype=np.int32)
        self.load_source(kernel_dir)

    def bind(self, session: DeviceSession) -> None:
        mf = cl.mem_flags
        nbytes = self.a.nbytes
        self.session = session
        self.a_buf = session.buffer(mf.READ_ONLY, nbytes)
        self.b_buf = session.buffer(mf.READ_ONLY, nbytes)
        self.out_buf = session.buffer(mf.WRITE_ONLY, nbytes)
        self.kernel = session.build(self.source.text, self.kernel_name)
        session.bind(self.kernel, self.a_buf, self.b_buf, self.out_buf)

    def _local_size(self) -> Optional[tuple[int]]:
        if self.local_size > 0 and self.size % self.local_size == 0:
            return (self.local_size,)
        return None

    def step(self) -> None:
        s = self.session
        s.upload(self.a_buf, self.a)
        s.upload(self.b_buf, self.b)
        s.dispatch(self.kernel, (self.size,), self._local_size())
        s.download(self.out, self.out_buf)

    def check(self) -> bool:
        return sums_to_zero(self.out)

    def summary(self) -> Dict[str, Any]:
        return {**super().summary(), "size": self.size, "local_size": self.local_size}
