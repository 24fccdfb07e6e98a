from __future__ import annotations
import math
from typing import List, Optional

import numpy as np

from fractals.base import RenderParams, GPU_MAX_COLOURS, GPU_LOCAL_SIZE
from fractals.errors import InvalidParamsError
from utils.enums import BackendType, PrecisionMode

U32_MAX = 0xFFFFFFFF


def _is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def validate_params(params: RenderParams, *, backend_hint: Optional[BackendType] = None) -> None:
    """
    Validates RenderParams before any work is scheduled. Raises InvalidParamsError
    listing every violated constraint.
    """
    errors: List[str] = []
    backend = backend_hint or params.backend

    # --- dimensions ---
    for name in ("width", "height", "max_iter", "max_colours", "samples", "threads"):
        val = getattr(params, name)
        if isinstance(val, bool) or not isinstance(val, (int, np.integer)):
            errors.append(f"{name} must be an integer, got {type(val).__name__}.")
        elif val <= 0:
            errors.append(f"{name} must be positive, got {val}.")

    # --- viewport ---
    for name in ("centre_x", "centre_y", "scale_y"):
        val = getattr(params, name)
        if not isinstance(val, (int, float, np.floating, np.integer)) or not math.isfinite(val):
            errors.append(f"{name} must be a finite real, got {val!r}.")
    if isinstance(params.scale_y, (int, float, np.floating)) and not params.scale_y > 0:
        errors.append(f"scale_y must be positive, got {params.scale_y}.")

    # --- colour ---
    if isinstance(params.max_colours, (int, np.integer)) and params.max_colours > 0 \
            and not _is_power_of_two(int(params.max_colours)):
        errors.append(f"max_colours must be a power of two, got {params.max_colours}.")
    if not isinstance(params.colour_flags, (int, np.integer)) or not 0 <= params.colour_flags <= 7:
        errors.append(f"colour_flags must be in [0, 7], got {params.colour_flags!r}.")
    if not isinstance(params.backend, BackendType):
        errors.append(f"backend must be a BackendType, got {params.backend!r}.")
    if not isinstance(params.precision, PrecisionMode):
        errors.append(f"precision must be a PrecisionMode, got {params.precision!r}.")

    if errors:
        raise InvalidParamsError("Invalid render parameters:\n- " + "\n- ".join(errors))

    # --- 32-bit word bounds shared by every kernel ---
    if params.max_iter * params.max_colours > U32_MAX:
        errors.append(f"max_iter * max_colours must fit in 32 bits "
                      f"({params.max_iter} * {params.max_colours}).")
    if params.samples * params.samples * (params.max_iter + 1) > U32_MAX:
        errors.append(f"samples^2 * (max_iter + 1) must fit in 32 bits "
                      f"(samples={params.samples}, max_iter={params.max_iter}).")
    if params.pixel_count > U32_MAX or params.width * params.samples > U32_MAX \
            or params.height * params.samples > U32_MAX:
        errors.append("raster is too large to index with 32-bit words.")

    # --- GPU shape ---
    if backend.is_gpu:
        lx, ly = GPU_LOCAL_SIZE
        if params.width % lx or params.height % ly:
            errors.append(f"{backend.name} renders need width and height divisible by "
                          f"{lx}x{ly}, got {params.width}x{params.height}.")
        if params.max_colours != GPU_MAX_COLOURS:
            errors.append(f"{backend.name} kernels render with {GPU_MAX_COLOURS} colours, "
                          f"got max_colours={params.max_colours}.")

    if errors:
        raise InvalidParamsError("Invalid render parameters:\n- " + "\n- ".join(errors))


def validate_raster(params: RenderParams, out) -> None:
    """
    Checks that `out` can receive the raster: a writable, contiguous uint32
    array with exactly width * height elements.
    """
    if not isinstance(out, np.ndarray):
        raise InvalidParamsError(f"output raster must be a numpy array, got {type(out).__name__}.")
    errors: List[str] = []
    if out.dtype != np.uint32:
        errors.append(f"output raster dtype must be uint32, got {out.dtype}.")
    if out.size != params.pixel_count:
        errors.append(f"output raster has {out.size} elements, expected {params.pixel_count}.")
    if not out.flags.c_contiguous:
        errors.append("output raster must be C-contiguous.")
    if not out.flags.writeable:
        errors.append("output raster must be writeable.")
    if errors:
        raise InvalidParamsError("Invalid output raster:\n- " + "\n- ".join(errors))
