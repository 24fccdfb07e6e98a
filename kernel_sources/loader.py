from __future__ import annotations
from typing import Dict, Any

from kernel_sources.registry import load_kernel as load_registered


def load_kernel(backend: str, fractal: str, operation: str, precision: str) -> Dict[str, Any]:
    """
    Return registered kernel metadata, checked for the keys the backend needs.
    """
    meta = load_registered(backend, fractal, operation, precision)
    _validate_meta(backend, meta, f"registry[{fractal}.{operation}:{backend}/{precision}]")
    return meta


def _validate_meta(backend: str, meta: Dict[str, Any], where: str) -> None:
    if "arg_order" not in meta or not isinstance(meta["arg_order"], (list, tuple)):
        raise KeyError(f"{where} must provide an 'arg_order' list")
    be = backend.upper()
    if be in ("OPENCL", "VULKAN"):
        if "src" not in meta["func"] or "kernel_name" not in meta["func"]:
            raise KeyError(f"{where} must provide 'src' and 'kernel_name' for {be}")
    elif be == "CPU":
        if not callable(meta.get("func")):
            raise KeyError(f"{where} must provide a callable 'func' for CPU")
