# Kernel sources package
from .loader import load_kernel
from .registry import KernelKey, register_kernel, list_kernels, iter_registry

# Importing the backend packages registers their kernels
from . import cpu, opencl, vulkan  # noqa: E402,F401

__all__ = [
    "KernelKey",
    "load_kernel",
    "register_kernel",
    "list_kernels",
    "iter_registry"
]
__version__ = "0.3.0"
