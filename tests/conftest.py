import io
from types import SimpleNamespace

import numpy as np
import pytest
from rich.console import Console


class FakeCLError(Exception):
    def __init__(self, msg, code=-5):
        super().__init__(msg)
        self.code = code


class _Handle:
    def __init__(self, cl, label, **attrs):
        self._cl = cl
        self.label = label
        self.data = None
        for k, v in attrs.items():
            setattr(self, k, v)
        cl.log.append(("create", label))

    def release(self):
        self._cl.log.append(("release", self.label))


class _Queue(_Handle):
    def flush(self):
        self._cl.log.append(("flush", self.label))

    def finish(self):
        self._cl.log.append(("finish", self.label))


class _Program(_Handle):
    def build(self, devices=None):
        self._cl.maybe_fail("build")

    def get_build_info(self, device, what):
        return "error: expected ';'"


class _Kernel(_Handle):
    def set_args(self, *args):
        self._cl.maybe_fail("set_args")
        self.args = args


class _Platform:
    def __init__(self, cl, index, n_devices):
        self._cl = cl
        self.name = f"Fake Platform {index}"
        self.vendor = "fake"
        self.version = "OpenCL 3.0"
        self._devices = [
            SimpleNamespace(name=f"Fake Device {i}", vendor="fake", version="OpenCL 3.0",
                            max_work_group_size=256, global_mem_size=1 << 30,
                            max_compute_units=4, image_support=True)
            for i in range(n_devices)
        ]

    def get_devices(self, device_type=None):
        self._cl.maybe_fail("devices")
        return list(self._devices)


def _vector_add(args, calls):
    a, b, out = args
    out.data = a.data + b.data


def _morphology(op):
    def run(args, calls):
        from clbench.workloads.image import reference_morphology

        src, dst = args
        dst.data = reference_morphology(src.data, op)

    return run


class FakeOpenCL:
    """Minimal stand-in for the pyopencl module that records every handle it hands out."""

    def __init__(self, n_platforms=1, n_devices=1, fail=()):
        self.log = []
        self.fail = set(fail)
        self.n_platforms = n_platforms
        self.n_devices = n_devices
        self.kernel_impls = {
            "vector_add": _vector_add,
            "erode": _morphology("erode"),
            "dilate": _morphology("dilate"),
        }
        self.dispatches = 0
        self.Error = FakeCLError
        self.mem_flags = SimpleNamespace(READ_WRITE=1, WRITE_ONLY=2, READ_ONLY=4)
        self.device_type = SimpleNamespace(DEFAULT=1)
        self.program_build_info = SimpleNamespace(LOG=0x1183)
        self.channel_order = SimpleNamespace(R=0x10B0)
        self.channel_type = SimpleNamespace(UNSIGNED_INT8=0x10DA)

    def maybe_fail(self, what):
        if what in self.fail:
            raise FakeCLError(f"{what} failed", code=-5)

    def get_platforms(self):
        self.maybe_fail("platforms")
        return [_Platform(self, i, self.n_devices) for i in range(self.n_platforms)]

    def Context(self, devices):
        self.maybe_fail("context")
        return _Handle(self, "context")

    def CommandQueue(self, ctx, device=None):
        self.maybe_fail("queue")
        return _Queue(self, "queue")

    def Buffer(self, ctx, flags, size):
        self.maybe_fail("buffer")
        n = sum(1 for action, label in self.log if action == "create" and label.startswith("buffer"))
        return _Handle(self, f"buffer{n}", size=size)

    def ImageFormat(self, order, dtype):
        return (order, dtype)

    def Image(self, ctx, flags, fmt, shape):
        self.maybe_fail("image")
        n = sum(1 for action, label in self.log if action == "create" and label.startswith("image"))
        return _Handle(self, f"image{n}", shape=shape)

    def Program(self, ctx, source):
        return _Program(self, "program", source=source)

    def Kernel(self, program, name):
        self.maybe_fail("kernel")
        return _Kernel(self, f"kernel:{name}", name=name)

    def enqueue_copy(self, queue, dest, src, is_blocking=True, **kwargs):
        if isinstance(dest, _Handle):
            dest.data = np.array(src, copy=True)
        else:
            np.copyto(dest, src.data)

    def enqueue_nd_range_kernel(self, queue, kernel, global_size, local_size):
        self.maybe_fail("dispatch")
        self.dispatches += 1
        self.kernel_impls[kernel.name](kernel.args, self.dispatches)
        return SimpleNamespace(wait=lambda: None)

    def released(self):
        return [label for action, label in self.log if action == "release"]


@pytest.fixture
def fake_cl(monkeypatch):
    fake = FakeOpenCL()
    import clbench.device
    import clbench.workloads.image
    import clbench.workloads.vector_add

    monkeypatch.setattr(clbench.device, "cl", fake)
    monkeypatch.setattr(clbench.workloads.vector_add, "cl", fake)
    monkeypatch.setattr(clbench.workloads.image, "cl", fake)
    return fake


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200)
