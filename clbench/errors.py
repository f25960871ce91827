"""Exception hierarchy shared by the loader, the device session and the runner."""

from __future__ import annotations

from typing import Optional


class ClbenchError(RuntimeError):
    pass


class KernelLoadError(ClbenchError):
    """Kernel source text could not be loaded from disk."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{reason}: {path}")
        self.path = path
        self.reason = reason


class ImageLoadError(ClbenchError):
    pass


class DeviceError(ClbenchError):
    """A compute API call failed. ``code`` carries the OpenCL status code when known."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message if code is None else f"{message} (code {code})")
        self.code = code


class OpenCLUnavailable(DeviceError):
    pass


__all__ = [
    "ClbenchError",
    "KernelLoadError",
    "ImageLoadError",
    "DeviceError",
    "OpenCLUnavailable",
]
