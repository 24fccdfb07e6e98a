from enum import Enum, auto


class BackendType(Enum):
    CPU = auto()
    OPENCL = auto()
    VULKAN = auto()

    @property
    def is_gpu(self) -> bool:
        return self is not BackendType.CPU

    @classmethod
    def from_name(cls, name: str) -> "BackendType":
        """Case-insensitive lookup ('cpu', 'OpenCL', 'vulkan')."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown backend '{name}', expected one of "
                             f"{', '.join(m.name.lower() for m in cls)}") from None


class PrecisionMode(Enum):
    Single = auto()
    Double = auto()
