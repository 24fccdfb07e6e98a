from dataclasses import dataclass
from typing import Dict, Any, List

import numpy as np

from fractals.base import RenderParams
from kernel_sources import load_kernel


@dataclass
class MandelbrotFractal:
    """
    Supplies kernels and typed kernel arguments for each backend.
    """
    name: str = "mandelbrot"

    def get_kernel(self, params: RenderParams, backend_name: str, op_name: str = "escape") -> Dict[str, Any]:
        return load_kernel(backend_name, self.name, op_name, params.precision_key)

    def build_arg_values(self, params: RenderParams, backend_name: str) -> Dict[str, Any]:
        """
        Kernel scalars for `backend_name`, cast to the widths each kernel declares:
        integers as uint32 on the GPUs, reals in the working precision.
        """
        real = params.dtype
        be = backend_name.upper()
        if be == "CPU":
            return {
                "width": int(params.width),
                "height": int(params.height),
                "view": np.array([params.centre_x, params.centre_y, params.scale_y], dtype=real),
                "max_iter": int(params.max_iter),
                "samples": int(params.samples),
                "max_colours": int(params.max_colours),
                "flags": int(params.colour_flags),
            }
        if be in ("OPENCL", "VULKAN"):
            return {
                "width": np.uint32(params.width),
                "height": np.uint32(params.height),
                "max_iter": np.uint32(params.max_iter),
                "samples": np.uint32(params.samples),
                "centre_x": real(params.centre_x),
                "centre_y": real(params.centre_y),
                "scale_y": real(params.scale_y),
            }
        raise NotImplementedError(f"No arguments defined for backend {backend_name}")

    def ordered_args(self, params: RenderParams, backend_name: str, names: List[str]) -> List[Any]:
        values = self.build_arg_values(params, backend_name)
        missing = [n for n in names if n not in values]
        if missing:
            raise KeyError(f"Missing kernel values for {missing} – "
                           f"ensure build_arg_values() provides them.")
        return [values[n] for n in names]
