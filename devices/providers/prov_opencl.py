from __future__ import annotations
from typing import List, Dict
import logging

import pyopencl as cl

logger = logging.getLogger(__name__)


def _device_type(bits: int) -> str:
    if bits & cl.device_type.GPU:
        return "GPU"
    if bits & cl.device_type.CPU:
        return "CPU"
    if bits & cl.device_type.ACCELERATOR:
        return "ACCELERATOR"
    return "OTHER"


def supports_fp64(device: "cl.Device") -> bool:
    try:
        return bool(device.double_fp_config)
    except cl.Error:
        return "cl_khr_fp64" in device.extensions


def supports_correct_fp32_divide(device: "cl.Device") -> bool:
    try:
        return bool(device.single_fp_config & cl.device_fp_config.CORRECTLY_ROUNDED_DIVIDE_SQRT)
    except cl.Error:
        return False


class OpenClDeviceProvider:
    backend = "OPENCL"

    @staticmethod
    def enumerate() -> List[Dict]:
        """
        Query pyopencl platforms/devices and return a list of device dicts
        compatible with DeviceInfo construction. Ordinals follow the order the
        OpenCL backend uses to pick a device.
        """
        devs: List[Dict] = []
        try:
            plats = cl.get_platforms()
        except cl.Error as e:
            logger.debug("No OpenCL platforms: %s", e)
            return devs

        ordinal = 0
        for p in plats:
            try:
                devices = p.get_devices()
            except cl.Error:
                logger.exception("Failed to query OpenCL devices for platform %s",
                                 getattr(p, "name", "<unknown>"))
                continue
            for d in devices:
                devs.append({
                    "device_id": ordinal,
                    "name": (getattr(d, "name", None) or f"OpenCL Device {ordinal}").strip(),
                    "vendor": getattr(d, "vendor", None),
                    "driver": getattr(d, "driver_version", None) or getattr(p, "version", None),
                    "device_type": _device_type(d.type),
                    "memory_total_mb": int(getattr(d, "global_mem_size", 0) // (1024 ** 2)),
                    "fp64": supports_fp64(d),
                    "is_available": bool(getattr(d, "available", True)),
                    "extra": {
                        "platform": p.name.strip(),
                        "cores": getattr(d, "max_compute_units", None),
                        "clock_mhz": getattr(d, "max_clock_frequency", None),
                    },
                })
                ordinal += 1
        return devs
