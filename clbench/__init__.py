"""
clbench package exports.

Public symbols are resolved from their submodules on first attribute access;
``import clbench`` by itself does not import pyopencl or Pillow.
"""
from __future__ import annotations

import importlib
from typing import Any

__all__ = [
  "run_test",
  "RunOptions",
  "Outcome",
  "Status",
  "DeviceSession",
  "load_kernel_source",
  "run_timed_loop",
  "LoopStats",
]

_EXPORTS = {
  "run_test": ".runner",
  "RunOptions": ".runner",
  "Outcome": ".runner",
  "Status": ".runner",
  "DeviceSession": ".device",
  "load_kernel_source": ".kernels",
  "run_timed_loop": ".timing",
  "LoopStats": ".timing",
}


def __getattr__(name: str) -> Any:  # lazy attribute loader
  module = _EXPORTS.get(name)
  if module is None:
    raise AttributeError(f"module 'clbench' has no attribute {name!r}")
  value = getattr(importlib.import_module(module, __name__), name)
  globals()[name] = value
  return value
