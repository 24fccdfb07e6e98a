import logging
from typing import Dict, Optional, Tuple

import numpy as np
import wgpu

from fractals.base import RenderParams, GPU_LOCAL_SIZE
from fractals.errors import BackendUnavailableError
from fractals.mandelbrot import MandelbrotFractal
from fractals.param_validator import validate_params, validate_raster
from backend.model.be_base import Backend, ProgressCallback
from devices.providers.prov_vulkan import VulkanDeviceProvider, FP64_FEATURE
from kernel_sources import load_kernel
from utils.enums import BackendType

logger = logging.getLogger(__name__)


class VulkanBackend(Backend):
    """
    Backend for Vulkan compute through wgpu.

    Physical device: the first Vulkan adapter (or the requested ordinal).
    Resources per render: a data storage buffer (width * height u32), a
    parameter storage buffer holding the packed Params record, and a
    readback buffer. Bind group 0 holds the data buffer and bind group 1 the
    parameters; the pipeline runs 8x8x1 workgroups. One command buffer is
    recorded, submitted, and waited on by mapping the readback buffer.
    """
    name = "VULKAN"

    def __init__(self, device: Optional[int] = None):
        self.device: Optional["wgpu.GPUDevice"] = None
        adapters = VulkanDeviceProvider.adapters()
        if not adapters:
            raise BackendUnavailableError("No Vulkan physical device with a compute queue found.")

        if device is None:
            self.device_ordinal, self.adapter = 0, adapters[0]
        else:
            if not 0 <= device < len(adapters):
                raise BackendUnavailableError(f"No Vulkan device with ordinal {device} found.")
            self.device_ordinal, self.adapter = device, adapters[device]

        info = self.adapter.info
        logger.info("Vulkan device %d: %s (%s)", self.device_ordinal,
                    info.get("device", "?"), info.get("adapter_type", "?"))

        # ask for every optional feature a registered kernel needs, where the adapter has it
        wanted = set()
        for precision in ("f32", "f64"):
            wanted.update(load_kernel(self.name, "mandelbrot", "escape", precision).get("required_features", []))
        self._features = {f for f in wanted if f in self.adapter.features}
        try:
            self.device = self.adapter.request_device_sync(required_features=sorted(self._features))
        except Exception as e:
            raise BackendUnavailableError(f"Failed to open Vulkan device: {e}") from e

        self._fractal = MandelbrotFractal()
        self._pipelines: Dict[str, Tuple["wgpu.GPUComputePipeline", dict]] = {}

    @property
    def supports_fp64(self) -> bool:
        return FP64_FEATURE in self.adapter.features

    def compile(self, params: RenderParams) -> None:
        key = params.precision_key
        if key in self._pipelines:
            return
        if self.device is None:
            raise BackendUnavailableError("Vulkan backend has been closed")

        meta = self._fractal.get_kernel(params, self.name)
        missing = [f for f in meta.get("required_features", []) if f not in self._features]
        if missing:
            raise BackendUnavailableError(
                f"Vulkan device {self.adapter.info.get('device', '?')} lacks {', '.join(missing)} "
                f"needed for {key} kernels")
        try:
            module = self.device.create_shader_module(code=meta["func"]["src"])
            pipeline = self.device.create_compute_pipeline(
                layout="auto",
                compute={"module": module, "entry_point": meta["func"]["kernel_name"]},
            )
        except Exception as e:
            raise BackendUnavailableError(f"Vulkan pipeline creation failed: {e}") from e
        self._pipelines[key] = (pipeline, meta)

    def _params_record(self, params: RenderParams, meta: dict) -> bytes:
        values = self._fractal.build_arg_values(params, self.name)
        record = np.zeros(1, dtype=meta["params_dtype"])
        for name in meta["scalars"]:
            record[name] = values[name]
        return record.tobytes()

    def render(self,
               params: RenderParams,
               out: np.ndarray,
               on_progress: Optional[ProgressCallback] = None) -> None:
        validate_params(params, backend_hint=BackendType.VULKAN)
        validate_raster(params, out)
        self._warn_ignored_colours(params)
        self.compile(params)

        pipeline, meta = self._pipelines[params.precision_key]
        device = self.device
        usage = wgpu.BufferUsage
        buffers = []
        try:
            data_buf = device.create_buffer(size=out.nbytes, usage=usage.STORAGE | usage.COPY_SRC)
            buffers.append(data_buf)
            params_buf = device.create_buffer_with_data(data=self._params_record(params, meta),
                                                        usage=usage.STORAGE)
            buffers.append(params_buf)
            readback = device.create_buffer(size=out.nbytes, usage=usage.MAP_READ | usage.COPY_DST)
            buffers.append(readback)

            data_set = device.create_bind_group(
                layout=pipeline.get_bind_group_layout(0),
                entries=[{"binding": 0, "resource": {"buffer": data_buf, "offset": 0, "size": data_buf.size}}],
            )
            params_set = device.create_bind_group(
                layout=pipeline.get_bind_group_layout(1),
                entries=[{"binding": 0, "resource": {"buffer": params_buf, "offset": 0, "size": params_buf.size}}],
            )

            lx, ly = GPU_LOCAL_SIZE
            encoder = device.create_command_encoder()
            compute_pass = encoder.begin_compute_pass()
            compute_pass.set_pipeline(pipeline)
            compute_pass.set_bind_group(0, data_set)
            compute_pass.set_bind_group(1, params_set)
            compute_pass.dispatch_workgroups(params.width // lx, params.height // ly, 1)
            compute_pass.end()
            encoder.copy_buffer_to_buffer(data_buf, 0, readback, 0, out.nbytes)
            device.queue.submit([encoder.finish()])

            # blocks until the submitted work has completed
            readback.map_sync(wgpu.MapMode.READ)
            try:
                out[:] = np.frombuffer(readback.read_mapped(), dtype=np.uint32)
            finally:
                readback.unmap()
        except Exception as e:
            raise BackendUnavailableError(f"Vulkan render failed: {e}") from e
        finally:
            for buf in buffers:
                buf.destroy()

    def close(self) -> None:
        if getattr(self, "_pipelines", None):
            self._pipelines.clear()
        if getattr(self, "device", None) is not None:
            try:
                self.device.destroy()
            except Exception as e:
                logger.exception("Error destroying Vulkan device during close: %s", e)
            self.device = None


if __name__ == "__main__":
    with VulkanBackend() as be:
        print(f"{be.device_ordinal}: {be.adapter.info.get('device')} fp64={be.supports_fp64}")
