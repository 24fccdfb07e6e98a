from typing import List

from devices.manager import DeviceManager
from utils.enums import BackendType


def available_backends() -> List[BackendType]:
    """Backends with at least one usable device, CPU last; CPU is always present."""
    backs = []
    for name in DeviceManager().backends():
        try:
            backs.append(BackendType.from_name(name))
        except ValueError:
            continue
    if BackendType.CPU in backs:
        backs.remove(BackendType.CPU)
    return backs + [BackendType.CPU]
