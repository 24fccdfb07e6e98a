from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

import numpy as np

from backend.model.be_base import Backend, ProgressCallback
from backend.model.be_cpu import CpuBackend
from backend.model.be_opencl import OpenClBackend
from backend.model.be_vulkan import VulkanBackend
from fractals.base import RenderParams
from utils.enums import BackendType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendSpec:
    """
    Describes a backend implementation: its class, whether it binds to a
    device ordinal, and whether renders on one instance must be serialised.
    """
    cls: Type[Backend]
    supports_devices: bool
    exclusive: bool


BACKENDS: Dict[BackendType, BackendSpec] = {
    BackendType.CPU: BackendSpec(cls=CpuBackend, supports_devices=False, exclusive=False),
    BackendType.OPENCL: BackendSpec(cls=OpenClBackend, supports_devices=True, exclusive=True),
    BackendType.VULKAN: BackendSpec(cls=VulkanBackend, supports_devices=True, exclusive=True),
}


class BackendManager:
    """
    Creates and caches backend instances, keyed by (backend, device).
    GPU instances own a context/queue, so renders on them take the
    instance lock; CPU renders run concurrently.
    """

    def __init__(self, registry: Optional[Dict[BackendType, BackendSpec]] = None) -> None:
        self.registry: Dict[BackendType, BackendSpec] = registry or BACKENDS
        self._cache: Dict[Tuple[BackendType, Optional[int]], Backend] = {}
        self._locks: Dict[Tuple[BackendType, Optional[int]], threading.Lock] = {}
        self._cache_lock = threading.Lock()

    def _key(self, backend: BackendType, device: Optional[int]) -> Tuple[BackendType, Optional[int]]:
        return backend, device if self.registry[backend].supports_devices else None

    def get(self, backend: BackendType, device: Optional[int] = None) -> Backend:
        key = self._key(backend, device)
        with self._cache_lock:
            be = self._cache.get(key)
            if be is None:
                spec = self.registry[backend]
                be = spec.cls(device=device) if spec.supports_devices else spec.cls()
                self._cache[key] = be
                self._locks[key] = threading.Lock()
                logger.debug("Created %s backend (device=%s)", backend.name, key[1])
            return be

    def render(self,
               params: RenderParams,
               out: np.ndarray,
               on_progress: Optional[ProgressCallback] = None) -> None:
        be = self.get(params.backend, params.device)
        key = self._key(params.backend, params.device)
        if self.registry[params.backend].exclusive:
            with self._locks[key]:
                be.render(params, out, on_progress)
        else:
            be.render(params, out, on_progress)

    def close_all(self) -> None:
        with self._cache_lock:
            for key, be in list(self._cache.items()):
                try:
                    be.close()
                except Exception:
                    logger.exception("Error closing %s backend", key[0].name)
            self._cache.clear()
            self._locks.clear()
