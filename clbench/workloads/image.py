"""Image morphology workload: 3x3 erosion or dilation of a grayscale image."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from PIL import Image, UnidentifiedImageError

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover
    cl = None  # type: ignore

from .. import config as _cfg
from ..device import DeviceSession
from ..errors import DeviceError, ImageLoadError
from ..utils.logging import get_logger
from .base import Workload

OPERATIONS = ("erode", "dilate")

_log = get_logger(__name__)


def load_grayscale(path: Union[str, Path]) -> tuple[np.ndarray, Dict[str, Any]]:
    """Decode ``path`` and convert it to an 8-bit luminance array of shape (height, width)."""
    p = Path(path)
    try:
        with Image.open(p) as img:
            meta = {"path": str(p), "width": img.width, "height": img.height,
                    "mode": img.mode, "format": img.format}
            gray = img.convert("L")
    except FileNotFoundError as e:
        raise ImageLoadError(f"Image not found: {p}") from e
    except UnidentifiedImageError as e:
        raise ImageLoadError(f"Not a recognised image: {p}") from e
    except OSError as e:
        raise ImageLoadError(f"Failed to read image {p}: {e}") from e
    return np.ascontiguousarray(np.asarray(gray, dtype=np.uint8)), meta


def reference_morphology(img: np.ndarray, op: str) -> np.ndarray:
    """3x3 min (erode) or max (dilate) with edge replication, matching CLK_ADDRESS_CLAMP_TO_EDGE."""
    if op not in OPERATIONS:
        raise ValueError(f"unknown morphology op {op!r}; expected one of {OPERATIONS}")
    windows = sliding_window_view(np.pad(img, 1, mode="edge"), (3, 3))
    reduce = np.min if op == "erode" else np.max
    return reduce(windows, axis=(-2, -1)).astype(np.uint8)


class ImageMorphologyWorkload(Workload):
    name = "image_morphology"
    kernel_file = "morphology_kernel.cl"

    def __init__(self, image_path: Optional[Union[str, Path]] = None, op: Optional[str] = None,
                 show: bool = False):
        super().__init__()
        self.image_path = Path(image_path or _cfg.get("CLBENCH_IMAGE_PATH"))
        self.op = op or _cfg.get("CLBENCH_MORPH_OP")
        if self.op not in OPERATIONS:
            raise ValueError(f"unknown morphology op {self.op!r}; expected one of {OPERATIONS}")
        self.show = show
        self.meta: Dict[str, Any] = {}
        self.src = self.out = self.expected = None
        self.src_img = self.dst_img = None

    @property
    def kernel_name(self) -> str:  # type: ignore[override]
        return self.op

    @property
    def shape(self) -> tuple[int, int]:
        """Image extent as (width, height)."""
        h, w = self.src.shape
        return (w, h)

    def setup(self, kernel_dir: Optional[Union[str, Path]] = None) -> None:
        self.src, self.meta = load_grayscale(self.image_path)
        _log.info(
            "Image %s: %dx%d mode=%s format=%s",
            self.meta["path"], self.meta["width"], self.meta["height"],
            self.meta["mode"], self.meta["format"],
        )
        self.out = np.zeros_like(self.src)
        self.expected = reference_morphology(self.src, self.op)
        self.load_source(kernel_dir)

    def bind(self, session: DeviceSession) -> None:
        if not getattr(session.device, "image_support", True):
            raise DeviceError("Device does not support images")
        mf = cl.mem_flags
        fmt = cl.ImageFormat(cl.channel_order.R, cl.channel_type.UNSIGNED_INT8)
        self.session = session
        self.src_img = session.image(mf.READ_ONLY, fmt, self.shape)
        self.dst_img = session.image(mf.WRITE_ONLY, fmt, self.shape)
        self.kernel = session.build(self.source.text, self.kernel_name)
        session.bind(self.kernel, self.src_img, self.dst_img)

    def step(self) -> None:
        s = self.session
        region = self.shape
        s.upload(self.src_img, self.src, origin=(0, 0), region=region)
        s.dispatch(self.kernel, region)
        s.download(self.out, self.dst_img, origin=(0, 0), region=region)

    def check(self) -> bool:
        return bool(np.array_equal(self.out, self.expected))

    def finish(self) -> None:
        if self.show:
            Image.fromarray(self.out).show(title=f"{self.op}: {self.image_path.name}")

    def summary(self) -> Dict[str, Any]:
        return {**super().summary(), "op": self.op, **self.meta}
