import numpy as np
import pyopencl as cl
import logging
from typing import Dict, Optional

from fractals.base import RenderParams
from fractals.errors import BackendUnavailableError
from fractals.mandelbrot import MandelbrotFractal
from fractals.param_validator import validate_params, validate_raster
from backend.model.be_base import Backend, ProgressCallback
from devices.providers.prov_opencl import supports_correct_fp32_divide, supports_fp64
from kernel_sources.opencl.mandelbrot.escape import FP32_DIVIDE_OPTION
from utils.enums import BackendType, PrecisionMode


logger = logging.getLogger(__name__)


class OpenClBackend(Backend):
    """
    Backend for OpenCL rendering: one 2-D launch over (rows, columns), one
    output buffer, blocking readback.
    """
    name = "OPENCL"

    def __init__(self, device: Optional[int] = None):
        try:
            plats: list[cl.Platform] = cl.get_platforms()
            all_devs: list[tuple[int, cl.Device]] = []
            ordinal = 0
            for p in plats:
                for d in p.get_devices():
                    all_devs.append((ordinal, d))
                    ordinal += 1
        except cl.Error as e:
            raise BackendUnavailableError(f"OpenCL platform query failed: {e}") from e

        if not all_devs:
            raise BackendUnavailableError("No OpenCL devices found.")

        if device is None:
            chosen = all_devs[0]
        else:
            chosen = next(((ord_id, d) for ord_id, d in all_devs if ord_id == device), None)
            if chosen is None:
                raise BackendUnavailableError(f"No OpenCL device with ordinal {device} found.")

        self.device_ordinal, self.device = chosen
        logger.info("OpenCL device %d: %s (%s)", self.device_ordinal,
                    self.device.name.strip(), self.device.platform.name.strip())

        try:
            self.ctx: cl.Context | None = cl.Context([self.device])
            self.queue: cl.CommandQueue | None = cl.CommandQueue(self.ctx, self.device)
        except cl.Error as e:
            raise BackendUnavailableError(f"Failed to create OpenCL context: {e}") from e

        self._fractal = MandelbrotFractal()
        self._kernels: Dict[str, cl.Kernel] = {}    # precision key -> kernel
        self._arg_order: Dict[str, list] = {}

    @property
    def supports_fp64(self) -> bool:
        return supports_fp64(self.device)

    def _build_options(self, opts: list) -> list:
        if FP32_DIVIDE_OPTION in opts and not supports_correct_fp32_divide(self.device):
            logger.warning("OpenCL device %s has no correctly rounded fp32 divide; "
                           "single-precision renders may differ from the CPU backend",
                           self.device.name.strip())
            return [o for o in opts if o != FP32_DIVIDE_OPTION]
        return list(opts)

    def compile(self, params: RenderParams) -> None:
        """
        Build the escape-time kernel for the precision of `params`.
        """
        key = params.precision_key
        if key in self._kernels:
            return
        if self.ctx is None:
            raise BackendUnavailableError("OpenCL backend has been closed")
        if params.precision == PrecisionMode.Double and not self.supports_fp64:
            raise BackendUnavailableError(
                f"OpenCL device {self.device.name.strip()} does not support 64-bit floats")

        meta = self._fractal.get_kernel(params, self.name)
        src = meta["func"]["src"]
        kname = meta["func"]["kernel_name"]
        opts = self._build_options(meta["func"].get("build_options", []))
        try:
            program = cl.Program(self.ctx, src).build(options=opts)
            self._kernels[key] = cl.Kernel(program, kname)
        except cl.Error as e:
            raise BackendUnavailableError(f"OpenCL kernel build failed: {e}") from e
        self._arg_order[key] = list(meta["arg_order"])

    def render(self,
               params: RenderParams,
               out: np.ndarray,
               on_progress: Optional[ProgressCallback] = None) -> None:
        validate_params(params, backend_hint=BackendType.OPENCL)
        validate_raster(params, out)
        self._warn_ignored_colours(params)
        self.compile(params)

        key = params.precision_key
        kernel = self._kernels[key]
        scalars = [n for n in self._arg_order[key] if n != "out"]
        try:
            buf = cl.Buffer(self.ctx, cl.mem_flags.WRITE_ONLY, out.nbytes)
        except cl.Error as e:
            raise BackendUnavailableError(f"OpenCL buffer allocation failed: {e}") from e

        try:
            kernel.set_args(*self._fractal.ordered_args(params, self.name, scalars), buf)
            # rows are dimension 0, columns dimension 1
            k_evt = cl.enqueue_nd_range_kernel(self.queue, kernel,
                                               global_work_size=(params.height, params.width),
                                               local_work_size=None)
            cl.enqueue_copy(self.queue, out, buf, is_blocking=True, wait_for=[k_evt])
        except cl.Error as e:
            raise BackendUnavailableError(f"OpenCL render failed: {e}") from e
        finally:
            buf.release()

    def close(self) -> None:
        if getattr(self, "queue", None) is not None:
            try:
                self.queue.finish()
            except cl.Error as e:
                logger.exception("Error finishing OpenCL queue during close: %s", e)
            self.queue = None

        if getattr(self, "_kernels", None):
            self._kernels.clear()
        self.ctx = None


if __name__ == "__main__":
    with OpenClBackend() as be:
        print(f"{be.device_ordinal}: {be.device.name} fp64={be.supports_fp64}")
