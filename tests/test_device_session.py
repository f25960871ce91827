import pytest

from clbench.device import DeviceSession, list_devices
from clbench.errors import DeviceError, OpenCLUnavailable


def test_session_releases_in_reverse_order(fake_cl):
    with DeviceSession(0, 0) as s:
        s.buffer(fake_cl.mem_flags.READ_ONLY, 16)
        s.buffer(fake_cl.mem_flags.WRITE_ONLY, 16)
        s.build("__kernel void vector_add() {}", "vector_add")
        assert s.is_open
        assert s.num_platforms == 1
        assert s.num_devices == 1
    assert not s.is_open
    assert fake_cl.released() == [
        "kernel:vector_add",
        "program",
        "buffer1",
        "buffer0",
        "queue",
        "context",
    ]
    actions = [a for a, _ in fake_cl.log]
    assert actions.index("finish") < actions.index("release")
    assert actions.index("flush") < actions.index("finish")


def test_build_failure_releases_everything_acquired(fake_cl):
    fake_cl.fail.add("build")
    with pytest.raises(DeviceError) as exc:
        with DeviceSession(0, 0) as s:
            s.buffer(fake_cl.mem_flags.READ_ONLY, 16)
            s.build("broken", "vector_add")
    assert exc.value.code == -5
    assert "clBuildProgram" in str(exc.value)
    assert fake_cl.released() == ["program", "buffer0", "queue", "context"]


def test_queue_failure_during_open_releases_context(fake_cl):
    fake_cl.fail.add("queue")
    with pytest.raises(DeviceError):
        with DeviceSession(0, 0):
            pass
    assert fake_cl.released() == ["context"]


def test_platform_enumeration_error_carries_code(fake_cl):
    fake_cl.fail.add("platforms")
    with pytest.raises(DeviceError) as exc:
        DeviceSession(0, 0).open()
    assert exc.value.code == -5
    assert fake_cl.released() == []


def test_no_platforms_is_unavailable(fake_cl):
    fake_cl.n_platforms = 0
    with pytest.raises(OpenCLUnavailable):
        DeviceSession(0, 0).open()


def test_no_devices_is_unavailable(fake_cl):
    fake_cl.n_devices = 0
    with pytest.raises(OpenCLUnavailable):
        DeviceSession(0, 0).open()


@pytest.mark.parametrize("platform_index,device_index", [(3, 0), (0, 2)])
def test_index_out_of_range(fake_cl, platform_index, device_index):
    with pytest.raises(DeviceError, match="out of range"):
        DeviceSession(platform_index, device_index).open()


def test_indices_default_from_config(fake_cl, monkeypatch):
    fake_cl.n_devices = 2
    monkeypatch.setenv("CLBENCH_OPENCL_DEVICE_INDEX", "1")
    with DeviceSession() as s:
        assert s.device.name == "Fake Device 1"


def test_close_is_idempotent(fake_cl):
    s = DeviceSession(0, 0).open()
    s.close()
    s.close()
    assert fake_cl.released() == ["queue", "context"]


def test_dispatch_error_is_translated(fake_cl):
    fake_cl.fail.add("dispatch")
    with DeviceSession(0, 0) as s:
        k = s.build("src", "vector_add")
        with pytest.raises(DeviceError, match="clEnqueueNDRangeKernel"):
            s.dispatch(k, (64,), (64,))


def test_list_devices_describes_platforms(fake_cl):
    fake_cl.n_platforms = 2
    fake_cl.n_devices = 3
    platforms = list_devices()
    assert [p["index"] for p in platforms] == [0, 1]
    assert len(platforms[1]["devices"]) == 3
    assert platforms[0]["devices"][0]["image_support"] is True
