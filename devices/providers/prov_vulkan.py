from __future__ import annotations
from typing import List, Dict
import logging

import wgpu

logger = logging.getLogger(__name__)

FP64_FEATURE = "shader-f64"


class VulkanDeviceProvider:
    backend = "VULKAN"

    @staticmethod
    def adapters() -> list:
        """
        Physical devices exposed through the Vulkan driver, in enumeration order.
        wgpu gives each adapter a single queue that accepts compute and transfer work.
        """
        try:
            adapters = wgpu.gpu.enumerate_adapters_sync()
        except Exception as e:
            logger.debug("Vulkan adapter enumeration failed: %s", e)
            return []
        return [a for a in adapters if str(a.info.get("backend_type", "")).lower() == "vulkan"]

    @classmethod
    def enumerate(cls) -> List[Dict]:
        devs: List[Dict] = []
        for ordinal, adapter in enumerate(cls.adapters()):
            info = adapter.info
            devs.append({
                "device_id": ordinal,
                "name": info.get("device") or f"Vulkan Device {ordinal}",
                "vendor": info.get("vendor") or None,
                "driver": info.get("description") or None,
                "device_type": info.get("adapter_type"),
                "memory_total_mb": None,
                "fp64": FP64_FEATURE in adapter.features,
                "is_available": True,
                "extra": {"architecture": info.get("architecture")},
            })
        return devs
