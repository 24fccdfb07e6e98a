"""
test_validation.py
"""
import numpy as np
import pytest

from backend.model.be_cpu import WorkTicket, worker_flags
from fractals.base import RenderParams
from fractals.errors import InvalidParamsError, RenderError
from fractals.param_validator import validate_params, validate_raster
from utils.enums import BackendType, PrecisionMode


def test_defaults_are_valid():
    params = RenderParams()
    validate_params(params)
    assert params.width == 1024 and params.height == 768
    assert params.scale_x == pytest.approx(2.5 * 1024 / 768)
    assert params.threads >= 1


def test_derived_properties():
    params = RenderParams(width=200, height=100, centre_x=0.0, centre_y=0.0, scale_y=2.0)
    assert params.scale_x == 4.0
    assert params.viewport == (-2.0, 2.0, -1.0, 1.0)
    assert params.pixel_count == 20000
    assert params.dtype is np.float64
    assert params.replace(precision=PrecisionMode.Single).precision_key == "f32"
    raster = params.new_raster()
    assert raster.dtype == np.uint32 and raster.size == 20000


@pytest.mark.parametrize(
    'changes, fragment',
    [
        ({"width": 0}, "width must be positive"),
        ({"height": -4}, "height must be positive"),
        ({"max_iter": 0}, "max_iter must be positive"),
        ({"samples": 0}, "samples must be positive"),
        ({"threads": 0}, "threads must be positive"),
        ({"max_colours": 100}, "power of two"),
        ({"colour_flags": 8}, "colour_flags"),
        ({"scale_y": 0.0}, "scale_y must be positive"),
        ({"centre_x": float("nan")}, "centre_x must be a finite real"),
        ({"width": 16.0}, "width must be an integer"),
        ({"max_iter": 0x1000000, "max_colours": 512}, "max_iter * max_colours"),
        ({"samples": 5000, "max_iter": 1000}, "samples^2 * (max_iter + 1)"),
    ]
)
def test_invalid_params(changes, fragment):
    params = RenderParams(width=16, height=16, threads=1).replace(**changes)
    with pytest.raises(InvalidParamsError) as info:
        validate_params(params)
    assert fragment in str(info.value)


def test_errors_are_aggregated():
    params = RenderParams(width=0, height=0, threads=1)
    with pytest.raises(InvalidParamsError) as info:
        validate_params(params)
    assert "width" in str(info.value) and "height" in str(info.value)


def test_invalid_params_is_a_render_error():
    with pytest.raises(RenderError):
        validate_params(RenderParams(width=0))


@pytest.mark.parametrize('backend', [BackendType.OPENCL, BackendType.VULKAN])
def test_gpu_dimensions_must_be_multiples_of_eight(backend):
    ok = RenderParams(width=64, height=48, backend=backend)
    validate_params(ok)
    with pytest.raises(InvalidParamsError, match="divisible"):
        validate_params(ok.replace(width=60))
    with pytest.raises(InvalidParamsError, match="colours"):
        validate_params(ok.replace(max_colours=512))
    # the CPU backend takes any size
    validate_params(ok.replace(width=60, backend=BackendType.CPU))


def test_backend_hint_overrides_params_backend():
    params = RenderParams(width=60, height=48)
    with pytest.raises(InvalidParamsError):
        validate_params(params, backend_hint=BackendType.OPENCL)


def test_validate_raster():
    params = RenderParams(width=8, height=4)
    validate_raster(params, params.new_raster())
    with pytest.raises(InvalidParamsError, match="numpy array"):
        validate_raster(params, [0] * 32)
    with pytest.raises(InvalidParamsError, match="uint32"):
        validate_raster(params, np.zeros(32, dtype=np.int64))
    with pytest.raises(InvalidParamsError, match="elements"):
        validate_raster(params, np.zeros(31, dtype=np.uint32))
    with pytest.raises(InvalidParamsError, match="contiguous"):
        validate_raster(params, np.zeros(64, dtype=np.uint32)[::2])
    frozen = params.new_raster()
    frozen.flags.writeable = False
    with pytest.raises(InvalidParamsError, match="writeable"):
        validate_raster(params, frozen)


def test_worker_flags():
    assert worker_flags(5, False, None) == 5
    assert [worker_flags(7, True, i) for i in range(9)] == [1, 2, 3, 4, 5, 6, 7, 1, 2]
    with pytest.raises(InvalidParamsError):
        worker_flags(7, True, None)
    with pytest.raises(InvalidParamsError):
        worker_flags(7, True, -1)


def test_work_ticket_claims_each_row_once():
    import threading
    ticket = WorkTicket()
    claimed = []
    lock = threading.Lock()

    def claim_many():
        mine = [ticket.claim() for _ in range(500)]
        with lock:
            claimed.extend(mine)

    threads = [threading.Thread(target=claim_many) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sorted(claimed) == list(range(4000))


def test_backend_type_from_name():
    assert BackendType.from_name("opencl") is BackendType.OPENCL
    assert BackendType.from_name(" Vulkan ") is BackendType.VULKAN
    assert not BackendType.CPU.is_gpu and BackendType.VULKAN.is_gpu
    with pytest.raises(ValueError, match="cuda"):
        BackendType.from_name("cuda")
