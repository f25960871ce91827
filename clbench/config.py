"""Central environment configuration utilities for clbench.

Provides typed accessors, a registry of known CLBENCH_* variables, and helper
functions to introspect the current effective configuration. CLI options take
precedence over these values; the registry only supplies defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


@dataclass(frozen=True)
class EnvVarMeta:
    name: str
    description: str
    default: Any
    parser: Callable[[str], Any]
    choices: Optional[List[str]] = None
    category: str = "general"


def _parse_int(val: str) -> int:
    return int(str(val).strip())


def _parse_count(val: str) -> int:
    n = _parse_int(val)
    if n < 0:
        raise ValueError(f"expected a non-negative integer, got {n}")
    return n


def _identity(val: str) -> str:
    return val


_REGISTRY: Dict[str, EnvVarMeta] = {
    "CLBENCH_LOAD_DOTENV": EnvVarMeta(
        name="CLBENCH_LOAD_DOTENV",
        description="Load a .env file from the working directory on startup (set 0 to disable)",
        default="1",
        parser=lambda v: str(v).lower() in ("1", "true", "yes", "on"),
        category="general",
    ),
    "CLBENCH_ITERATIONS": EnvVarMeta(
        name="CLBENCH_ITERATIONS",
        description="Iteration budget of the timed loop",
        default="10000",
        parser=_parse_count,
        category="benchmark",
    ),
    "CLBENCH_KERNEL_DIR": EnvVarMeta(
        name="CLBENCH_KERNEL_DIR",
        description="Directory holding kernel .cl files (empty: bundled kernels)",
        default="",
        parser=_identity,
        category="benchmark",
    ),
    "CLBENCH_IMAGE_PATH": EnvVarMeta(
        name="CLBENCH_IMAGE_PATH",
        description="Input image for the image processing test",
        default="input.png",
        parser=_identity,
        category="image",
    ),
    "CLBENCH_MORPH_OP": EnvVarMeta(
        name="CLBENCH_MORPH_OP",
        description="Morphology operation of the image processing test",
        default="erode",
        parser=_identity,
        choices=["erode", "dilate"],
        category="image",
    ),
    "CLBENCH_OPENCL_PLATFORM_INDEX": EnvVarMeta(
        name="CLBENCH_OPENCL_PLATFORM_INDEX",
        description="Select OpenCL platform by index",
        default="0",
        parser=_parse_int,
        category="opencl",
    ),
    "CLBENCH_OPENCL_DEVICE_INDEX": EnvVarMeta(
        name="CLBENCH_OPENCL_DEVICE_INDEX",
        description="Select OpenCL device by index within the platform",
        default="0",
        parser=_parse_int,
        category="opencl",
    ),
    "CLBENCH_LOCAL_SIZE": EnvVarMeta(
        name="CLBENCH_LOCAL_SIZE",
        description="Work-group size of the vector addition kernel",
        default="64",
        parser=_parse_int,
        category="opencl",
    ),
    "CLBENCH_LOG_LEVEL": EnvVarMeta(
        name="CLBENCH_LOG_LEVEL",
        description="Override log verbosity (DEBUG,INFO,WARNING,ERROR)",
        default="INFO",
        parser=_identity,
        category="logging",
    ),
}


def get(name: str) -> Any:
    meta = _REGISTRY.get(name)
    if not meta:
        return os.environ.get(name)
    raw = os.environ.get(name, str(meta.default))
    try:
        value = meta.parser(raw)
    except ValueError:
        return meta.parser(str(meta.default))
    if meta.choices and value not in meta.choices:
        return meta.parser(str(meta.default))
    return value


def as_dict(include_unset: bool = False) -> Dict[str, Any]:
    data = {}
    for k in _REGISTRY:
        if os.environ.get(k) is None and not include_unset:
            continue
        data[k] = get(k)
    return data


def describe() -> List[Dict[str, Any]]:
    info = []
    for meta in _REGISTRY.values():
        info.append(
            {
                "name": meta.name,
                "category": meta.category,
                "default": meta.default,
                "current": get(meta.name),
                "description": meta.description,
                "choices": meta.choices or [],
            }
        )
    return sorted(info, key=lambda x: (x["category"], x["name"]))


def load_dotenv(path: Optional[str] = None) -> int:
    """Load KEY=VALUE lines from a .env file without clobbering the environment.

    Returns the number of variables applied.
    """
    if not get("CLBENCH_LOAD_DOTENV"):
        return 0
    target = path or os.path.join(os.getcwd(), ".env")
    if not os.path.isfile(target):
        return 0
    applied = 0
    with open(target, encoding="utf-8") as fh:
        for line in fh:
            s = line.strip()
            if not s or s.startswith("#") or "=" not in s:
                continue
            k, v = s.split("=", 1)
            k = k.strip()
            v = v.strip().strip('"').strip("'")
            if k and v and k not in os.environ:
                os.environ[k] = v
                applied += 1
    return applied


__all__ = ["get", "as_dict", "describe", "load_dotenv", "EnvVarMeta"]
