"""OpenCL device session: one context and one command queue on one device.

Responsibilities:
  * Platform/device enumeration honoring CLBENCH_OPENCL_PLATFORM_INDEX and
    CLBENCH_OPENCL_DEVICE_INDEX.
  * Ownership of every handle created through the session (memory objects,
    programs, kernels, the queue and the context) with release in reverse
    acquisition order on every exit path.
  * Translation of pyopencl errors into DeviceError carrying the status code.
"""
from __future__ import annotations

from contextlib import ExitStack, contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover - platform w/o OpenCL
    cl = None  # type: ignore

from . import config as _cfg
from .errors import DeviceError, OpenCLUnavailable
from .utils.logging import get_logger

_log = get_logger(__name__)


def is_opencl_available() -> bool:
    if cl is None:
        return False
    try:
        for p in cl.get_platforms():
            try:
                if p.get_devices():
                    return True
            except cl.Error:
                continue
        return False
    except cl.Error:
        return False


def _require_cl() -> None:
    if cl is None:
        raise OpenCLUnavailable("pyopencl not available")


def _error_code(err: BaseException) -> Optional[int]:
    try:
        code = err.code  # type: ignore[attr-defined]
    except (AttributeError, IndexError, TypeError):
        return None
    return code if isinstance(code, int) else None


@contextmanager
def _device_call(what: str) -> Iterator[None]:
    try:
        yield
    except cl.Error as e:
        raise DeviceError(f"{what} failed: {e}", code=_error_code(e)) from e


def _release(obj: Any, label: str) -> None:
    release = getattr(obj, "release", None)
    if release is None:
        _log.debug("Dropped %s", label)
        return
    try:
        release()
    except cl.Error as e:
        _log.warning("Failed to release %s: %s", label, e)
    else:
        _log.debug("Released %s", label)


class DeviceSession:
    """Scoped OpenCL session.

    Use as a context manager; ``close()`` is idempotent and always runs the
    release callbacks even when a previous step raised.
    """

    def __init__(self, platform_index: Optional[int] = None, device_index: Optional[int] = None):
        if platform_index is None:
            platform_index = _cfg.get("CLBENCH_OPENCL_PLATFORM_INDEX")
        if device_index is None:
            device_index = _cfg.get("CLBENCH_OPENCL_DEVICE_INDEX")
        self.platform_index = int(platform_index)
        self.device_index = int(device_index)
        self.platform = None
        self.device = None
        self.ctx = None
        self.queue = None
        self.num_platforms = 0
        self.num_devices = 0
        self._stack = ExitStack()
        self._open = False

    def __enter__(self) -> "DeviceSession":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def _own(self, obj: Any, label: str) -> Any:
        self._stack.callback(_release, obj, label)
        return obj

    def open(self) -> "DeviceSession":
        _require_cl()
        try:
            self._open_handles()
        except BaseException:
            self.close()
            raise
        self._open = True
        return self

    def _open_handles(self) -> None:
        with _device_call("clGetPlatformIDs"):
            platforms = cl.get_platforms()
        self.num_platforms = len(platforms)
        _log.info("Number of CL platforms: %d", self.num_platforms)
        if not platforms:
            raise OpenCLUnavailable("No OpenCL platforms found")
        if not 0 <= self.platform_index < len(platforms):
            raise DeviceError(
                f"Platform index {self.platform_index} out of range ({len(platforms)} platforms)"
            )
        self.platform = platforms[self.platform_index]

        with _device_call("clGetDeviceIDs"):
            devices = self.platform.get_devices(device_type=cl.device_type.DEFAULT)
        self.num_devices = len(devices)
        _log.info("Number of CL devices: %d", self.num_devices)
        if not devices:
            raise OpenCLUnavailable("No OpenCL devices found")
        if not 0 <= self.device_index < len(devices):
            raise DeviceError(f"Device index {self.device_index} out of range ({len(devices)} devices)")
        self.device = devices[self.device_index]
        _log.info("Using device: %s", getattr(self.device, "name", "?"))

        with _device_call("clCreateContext"):
            self.ctx = self._own(cl.Context(devices=[self.device]), "context")
        with _device_call("clCreateCommandQueue"):
            self.queue = self._own(cl.CommandQueue(self.ctx, device=self.device), "command queue")

    def buffer(self, flags: int, nbytes: int) -> "cl.Buffer":
        with _device_call("clCreateBuffer"):
            return self._own(cl.Buffer(self.ctx, flags, size=nbytes), f"buffer[{nbytes}B]")

    def image(self, flags: int, fmt: "cl.ImageFormat", shape: Tuple[int, int]) -> "cl.Image":
        with _device_call("clCreateImage"):
            return self._own(cl.Image(self.ctx, flags, fmt, shape=shape), f"image{tuple(shape)}")

    def build(self, source: str, kernel_name: str) -> "cl.Kernel":
        """Compile ``source`` for the session device and return ``kernel_name`` from it."""
        with _device_call("clCreateProgramWithSource"):
            program = self._own(cl.Program(self.ctx, source), "program")
        try:
            program.build(devices=[self.device])
        except cl.Error as e:
            try:
                build_log = program.get_build_info(self.device, cl.program_build_info.LOG)
            except cl.Error:
                build_log = ""
            if build_log:
                _log.error("Build log:\n%s", build_log)
            raise DeviceError(f"clBuildProgram failed: {e}", code=_error_code(e)) from e
        with _device_call(f"clCreateKernel({kernel_name})"):
            return self._own(cl.Kernel(program, kernel_name), f"kernel {kernel_name}")

    def bind(self, kernel: "cl.Kernel", *args: Any) -> None:
        with _device_call("clSetKernelArg"):
            kernel.set_args(*args)

    def upload(self, dest: Any, host: Any, **kwargs: Any) -> None:
        with _device_call("clEnqueueWrite"):
            cl.enqueue_copy(self.queue, dest, host, is_blocking=True, **kwargs)

    def download(self, host: Any, src: Any, **kwargs: Any) -> None:
        with _device_call("clEnqueueRead"):
            cl.enqueue_copy(self.queue, host, src, is_blocking=True, **kwargs)

    def dispatch(
        self,
        kernel: "cl.Kernel",
        global_size: Sequence[int],
        local_size: Optional[Sequence[int]] = None,
    ) -> None:
        with _device_call("clEnqueueNDRangeKernel"):
            evt = cl.enqueue_nd_range_kernel(self.queue, kernel, tuple(global_size),
                                             tuple(local_size) if local_size else None)
            evt.wait()

    def close(self) -> None:
        if self.queue is not None:
            try:
                self.queue.flush()
                self.queue.finish()
            except cl.Error as e:
                _log.warning("Failed to drain command queue: %s", e)
        self._stack.close()
        self.queue = None
        self.ctx = None
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open


def list_devices() -> List[Dict[str, Any]]:
    """Describe every OpenCL platform and its devices."""
    _require_cl()
    out: List[Dict[str, Any]] = []
    with _device_call("clGetPlatformIDs"):
        platforms = cl.get_platforms()
    for pi, p in enumerate(platforms):
        try:
            devices = p.get_devices()
        except cl.Error as e:
            _log.warning("Could not list devices of platform %s: %s", getattr(p, "name", pi), e)
            devices = []
        out.append(
            {
                "index": pi,
                "name": getattr(p, "name", None),
                "vendor": getattr(p, "vendor", None),
                "version": getattr(p, "version", None),
                "devices": [
                    {
                        "index": di,
                        "name": getattr(d, "name", None),
                        "vendor": getattr(d, "vendor", None),
                        "version": getattr(d, "version", None),
                        "max_work_group_size": getattr(d, "max_work_group_size", None),
                        "global_mem_size": getattr(d, "global_mem_size", None),
                        "max_compute_units": getattr(d, "max_compute_units", None),
                        "image_support": bool(getattr(d, "image_support", False)),
                    }
                    for di, d in enumerate(devices)
                ],
            }
        )
    return out


__all__ = [
    "DeviceSession",
    "is_opencl_available",
    "list_devices",
]
