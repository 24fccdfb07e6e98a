"""
Shared fixtures for the renderer tests.
"""
import pytest

from backend.model.be_cpu import CpuBackend
from fractals.base import RenderParams


@pytest.fixture(scope="session")
def cpu_backend():
    """One CPU backend for the session so numba compiles each precision once."""
    be = CpuBackend()
    yield be
    be.close()


@pytest.fixture
def small_params():
    return RenderParams(width=16, height=16, centre_x=-0.75, centre_y=0.0, scale_y=2.5,
                        max_iter=256, samples=1, colour_flags=7, threads=1)


def render_cpu(backend, params):
    out = params.new_raster()
    backend.render(params, out)
    return out
