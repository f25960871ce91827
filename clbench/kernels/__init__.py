"""
Kernel source loading for clbench.

Kernel files are plain OpenCL C text. The bundled ones live next to this
module under ``opencl/``; a kernel directory given on the command line or via
CLBENCH_KERNEL_DIR takes their place.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .. import config as _cfg
from ..errors import KernelLoadError
from ..utils.logging import get_logger

MAX_SOURCE_SIZE = 0x100000

BUNDLED_KERNEL_DIR = Path(__file__).parent / "opencl"

_log = get_logger(__name__)


@dataclass(frozen=True)
class KernelSource:
    """Kernel text loaded from disk together with its size in bytes."""

    path: Path
    text: str
    size: int


def kernel_dir(override: Optional[Union[str, Path]] = None) -> Path:
    """Directory kernel files are resolved against."""
    configured = override or _cfg.get("CLBENCH_KERNEL_DIR")
    if configured:
        return Path(configured)
    return BUNDLED_KERNEL_DIR


def resolve_kernel_path(name: str, override: Optional[Union[str, Path]] = None) -> Path:
    return kernel_dir(override) / name


def load_kernel_source(path: Union[str, Path]) -> KernelSource:
    """Read a whole kernel file into memory.

    Raises:
        KernelLoadError: if the file is missing, is a directory, is empty,
            cannot be read or decoded, is larger than MAX_SOURCE_SIZE, or
            cannot be closed cleanly.
    """
    p = Path(path)
    if p.is_dir():
        raise KernelLoadError(str(p), "Kernel path is a directory")
    try:
        fh = open(p, "rb")
    except OSError as e:
        raise KernelLoadError(str(p), f"Failed to load kernel ({e.strerror or e})") from e

    read_error: Optional[OSError] = None
    data = b""
    try:
        data = fh.read(MAX_SOURCE_SIZE + 1)
    except OSError as e:
        read_error = e
    try:
        fh.close()
    except OSError as e:
        if read_error is None:
            raise KernelLoadError(str(p), "Failed to close stream while reading kernel") from e
    if read_error is not None:
        raise KernelLoadError(str(p), f"Something went wrong reading kernel ({read_error})") from read_error

    if not data:
        raise KernelLoadError(str(p), "Did not read any bytes from kernel")
    if len(data) > MAX_SOURCE_SIZE:
        raise KernelLoadError(str(p), f"Kernel source exceeds {MAX_SOURCE_SIZE} bytes")
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise KernelLoadError(str(p), "Something went wrong reading kernel (not valid UTF-8)") from e

    _log.info("Loaded %s: %d bytes", p, len(data))
    return KernelSource(path=p, text=text, size=len(data))


__all__ = [
    "MAX_SOURCE_SIZE",
    "BUNDLED_KERNEL_DIR",
    "KernelSource",
    "kernel_dir",
    "resolve_kernel_path",
    "load_kernel_source",
]
