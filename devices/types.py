from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Dict

@dataclass(frozen=True)
class DeviceInfo:
    backend: str
    device_id: Optional[int]
    name: str
    vendor: Optional[str] = None
    driver: Optional[str] = None
    device_type: Optional[str] = None
    memory_total_mb: Optional[int] = None
    fp64: bool = False
    is_available: bool = True
    extra: Dict[str, object] = field(default_factory=dict)

    def __str__(self) -> str:
        ordinal = "-" if self.device_id is None else self.device_id
        return (f"[{self.backend}:{ordinal}] {self.name} "
                f"({self.vendor or 'unknown vendor'}, fp64={'yes' if self.fp64 else 'no'})")
