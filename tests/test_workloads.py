import numpy as np
import pytest
from PIL import Image

from clbench.errors import ImageLoadError
from clbench.workloads.image import ImageMorphologyWorkload, load_grayscale, reference_morphology
from clbench.workloads.vector_add import LIST_SIZE, make_inputs, sums_to_zero


def test_vector_inputs_are_symmetric():
    a, b = make_inputs()
    assert a.shape == b.shape == (LIST_SIZE,)
    assert a.dtype == b.dtype == np.int32
    assert a[10] == 10 and b[10] == -10
    assert sums_to_zero(a + b)


def test_sum_check_detects_nonzero():
    out = np.zeros(8, dtype=np.int32)
    out[3] = 1
    assert not sums_to_zero(out)


def test_sum_check_does_not_overflow_int32():
    out = np.array([2**31 - 1, 2**31 - 1, -(2**31 - 1), -(2**31 - 1)], dtype=np.int32)
    assert sums_to_zero(out)


def test_reference_erode_and_dilate():
    img = np.zeros((5, 5), dtype=np.uint8)
    img[2, 2] = 200
    dilated = reference_morphology(img, "dilate")
    assert dilated[1:4, 1:4].min() == 200
    assert dilated[0, 0] == 0
    assert reference_morphology(img, "erode").max() == 0

    full = np.full((4, 6), 9, dtype=np.uint8)
    full[0, 0] = 1
    eroded = reference_morphology(full, "erode")
    assert eroded.shape == full.shape
    assert eroded[0, 0] == eroded[1, 1] == 1
    assert eroded[3, 5] == 9


def test_reference_rejects_unknown_op():
    with pytest.raises(ValueError):
        reference_morphology(np.zeros((2, 2), dtype=np.uint8), "open")


def test_load_grayscale_converts_to_luminance(tmp_path):
    path = tmp_path / "rgb.png"
    Image.new("RGB", (7, 3), color=(255, 255, 255)).save(path)
    arr, meta = load_grayscale(path)
    assert arr.shape == (3, 7)
    assert arr.dtype == np.uint8
    assert arr.flags["C_CONTIGUOUS"]
    assert int(arr.min()) == 255
    assert meta["width"] == 7 and meta["height"] == 3
    assert meta["mode"] == "RGB"
    assert meta["format"] == "PNG"


def test_load_grayscale_missing_file(tmp_path):
    with pytest.raises(ImageLoadError, match="not found"):
        load_grayscale(tmp_path / "missing.png")


def test_load_grayscale_not_an_image(tmp_path):
    path = tmp_path / "notes.png"
    path.write_text("hello")
    with pytest.raises(ImageLoadError):
        load_grayscale(path)


def test_image_workload_rejects_unknown_op():
    with pytest.raises(ValueError):
        ImageMorphologyWorkload(image_path="x.png", op="blur")


def test_image_workload_uses_op_as_kernel_name(monkeypatch):
    monkeypatch.setenv("CLBENCH_MORPH_OP", "dilate")
    wl = ImageMorphologyWorkload(image_path="x.png")
    assert wl.kernel_name == "dilate"
