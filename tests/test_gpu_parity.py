"""
test_gpu_parity.py

OpenCL renders must match the CPU backend bit for bit. WGSL gives no control
over multiply-add contraction, so Vulkan renders are held to a pixel-agreement
tolerance instead. Skipped when the machine exposes no OpenCL platform or
Vulkan adapter.
"""
import numpy as np
import pytest

from conftest import render_cpu
from devices.providers.prov_opencl import OpenClDeviceProvider, supports_correct_fp32_divide
from devices.providers.prov_vulkan import VulkanDeviceProvider
from fractals.base import RenderParams
from fractals.errors import InvalidParamsError
from utils.enums import BackendType, PrecisionMode

# share of pixels whose top 16 bits must match the CPU raster
VULKAN_AGREEMENT = 0.98

OPENCL_DEVICES = OpenClDeviceProvider.enumerate()
VULKAN_ADAPTERS = VulkanDeviceProvider.adapters()

needs_opencl = pytest.mark.skipif(not OPENCL_DEVICES, reason="no OpenCL device")
needs_vulkan = pytest.mark.skipif(not VULKAN_ADAPTERS, reason="no Vulkan adapter")

PARITY_PARAMS = [
    RenderParams(width=16, height=16, centre_x=-0.75, centre_y=0.0, scale_y=2.5,
                 max_iter=256, samples=1, threads=2),
    RenderParams(width=64, height=48, centre_x=-0.5, centre_y=0.25, scale_y=1.5,
                 max_iter=300, samples=2, threads=4),
    # height * samples = 72: dy is not a power-of-two fraction
    RenderParams(width=40, height=24, centre_x=-1.25, centre_y=0.05, scale_y=0.6,
                 max_iter=200, samples=3, threads=4),
]


def _parity_cases():
    for params in PARITY_PARAMS:
        for precision in (PrecisionMode.Double, PrecisionMode.Single):
            yield params.replace(precision=precision)


@pytest.fixture(scope="module")
def opencl_backend():
    from backend.model.be_opencl import OpenClBackend
    be = OpenClBackend()
    yield be
    be.close()


@pytest.fixture(scope="module")
def vulkan_backend():
    from backend.model.be_vulkan import VulkanBackend
    be = VulkanBackend()
    yield be
    be.close()


@needs_opencl
@pytest.mark.parametrize('params', list(_parity_cases()), ids=str)
def test_opencl_matches_cpu(cpu_backend, opencl_backend, params):
    if params.precision == PrecisionMode.Double and not opencl_backend.supports_fp64:
        pytest.skip("OpenCL device has no 64-bit floats")
    if params.precision == PrecisionMode.Single and not supports_correct_fp32_divide(opencl_backend.device):
        pytest.skip("OpenCL device has no correctly rounded fp32 divide")
    gpu = params.replace(backend=BackendType.OPENCL).new_raster()
    opencl_backend.render(params.replace(backend=BackendType.OPENCL), gpu)
    assert np.array_equal(gpu, render_cpu(cpu_backend, params))


@needs_vulkan
@pytest.mark.parametrize('params', list(_parity_cases()), ids=str)
def test_vulkan_agrees_with_cpu(cpu_backend, vulkan_backend, params):
    if params.precision == PrecisionMode.Double and not vulkan_backend.supports_fp64:
        pytest.skip("Vulkan adapter has no 64-bit floats")
    gpu = params.new_raster()
    vulkan_backend.render(params.replace(backend=BackendType.VULKAN), gpu)
    cpu = render_cpu(cpu_backend, params)
    agree = np.count_nonzero((gpu >> 16) == (cpu >> 16)) / cpu.size
    assert agree >= VULKAN_AGREEMENT


@needs_opencl
def test_opencl_rejects_unaligned_size(opencl_backend):
    params = RenderParams(width=20, height=16, backend=BackendType.OPENCL)
    with pytest.raises(InvalidParamsError):
        opencl_backend.render(params, params.new_raster())


@needs_vulkan
def test_vulkan_rejects_unaligned_size(vulkan_backend):
    params = RenderParams(width=16, height=12, backend=BackendType.VULKAN)
    with pytest.raises(InvalidParamsError):
        vulkan_backend.render(params, params.new_raster())


def test_opencl_build_options_request_ieee_divide():
    from kernel_sources import load_kernel
    from kernel_sources.opencl.mandelbrot.escape import FP32_DIVIDE_OPTION
    for precision in ("f32", "f64"):
        opts = load_kernel("OPENCL", "mandelbrot", "escape", precision)["func"]["build_options"]
        assert FP32_DIVIDE_OPTION in opts
    assert "USE_DOUBLE=1" in load_kernel("OPENCL", "mandelbrot", "escape", "f64")["func"]["build_options"]


def test_vulkan_compile_checks_registered_features():
    from types import SimpleNamespace
    from backend.model.be_vulkan import VulkanBackend
    from fractals.errors import BackendUnavailableError
    from fractals.mandelbrot import MandelbrotFractal

    # a backend whose device was opened without shader-f64
    be = VulkanBackend.__new__(VulkanBackend)
    be.adapter = SimpleNamespace(info={"device": "fake"}, features=set())
    be.device = SimpleNamespace(destroy=lambda: None)
    be._features = set()
    be._fractal = MandelbrotFractal()
    be._pipelines = {}
    with pytest.raises(BackendUnavailableError, match="shader-f64"):
        be.compile(RenderParams(width=16, height=16, precision=PrecisionMode.Double))
    be.close()
