from __future__ import annotations
import os
import platform
from typing import List, Dict

class CpuDeviceProvider:
    backend = "CPU"

    @staticmethod
    def enumerate() -> List[Dict]:
        return [{
            "device_id": None,
            "name": platform.processor() or platform.machine() or "CPU",
            "vendor": None,
            "driver": None,
            "device_type": "CPU",
            "memory_total_mb": None,
            "fp64": True,
            "is_available": True,
            "extra": {"cores": os.cpu_count()}
        }]
