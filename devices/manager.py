from __future__ import annotations
from typing import List, Optional
import logging

from devices.types import DeviceInfo
from devices.providers.prov_cpu import CpuDeviceProvider
from devices.providers.prov_opencl import OpenClDeviceProvider
from devices.providers.prov_vulkan import VulkanDeviceProvider

logger = logging.getLogger(__name__)

PROVIDER = CpuDeviceProvider | OpenClDeviceProvider | VulkanDeviceProvider


class DeviceManager:
    """
    Enumerates compute devices via pluggable providers.
    """
    def __init__(self, providers: Optional[List[PROVIDER]] = None) -> None:
        self.providers = providers or [OpenClDeviceProvider(), VulkanDeviceProvider(), CpuDeviceProvider()]
        self._devices: List[DeviceInfo] = []
        self.refresh()

    def refresh(self) -> None:
        devices: List[DeviceInfo] = []
        for p in self.providers:
            try:
                for raw in p.enumerate():
                    devices.append(raw if isinstance(raw, DeviceInfo) else DeviceInfo(backend=p.backend, **raw))
            except Exception:
                logger.exception("Device enumeration failed for %s", p.backend)
        self._devices = devices

    def list(self, backend: Optional[str] = None) -> List[DeviceInfo]:
        if backend:
            be = backend.upper()
            return [d for d in self._devices if d.backend.upper() == be]
        return list(self._devices)

    def backends(self) -> List[str]:
        """Backend names with at least one available device, in enumeration order."""
        seen: List[str] = []
        for d in self._devices:
            if d.is_available and d.backend not in seen:
                seen.append(d.backend)
        return seen
