from __future__ import annotations
from typing import Any, Dict, Iterator, List, NamedTuple, Tuple


class KernelKey(NamedTuple):
    fractal: str
    op_name: str
    backend: str        # upper-case BackendType name
    precision: str      # "f32" | "f64"


_REGISTRY: Dict[KernelKey, Dict[str, Any]] = {}


def _key(fractal: str, op_name: str, backend: str, precision: str) -> KernelKey:
    return KernelKey(fractal, op_name, backend.upper(), precision)


def register_kernel(fractal: str, op_name: str, backend: str, precision: str, **meta: Any) -> None:
    """
    Register kernel metadata under (fractal, op, backend, precision).
    A later registration for the same key replaces the earlier one.
    Example:
        register_kernel("mandelbrot", "escape", "CPU", "f64", func=escape_row, arg_order=[...])
    """
    _REGISTRY[_key(fractal, op_name, backend, precision)] = meta


def load_kernel(backend: str, fractal: str, op_name: str, precision: str) -> Dict[str, Any]:
    """
    Metadata registered for the key. The KeyError names the precisions
    that do exist for the same fractal/op/backend, if any.
    """
    key = _key(fractal, op_name, backend, precision)
    try:
        return _REGISTRY[key]
    except KeyError:
        have = sorted(k.precision for k in _REGISTRY if k[:3] == key[:3])
        hint = f" (registered: {', '.join(have)})" if have else ""
        raise KeyError(f"Kernel not found for fractal='{fractal}', op='{op_name}', "
                       f"backend='{key.backend}', precision='{precision}'{hint}") from None


def list_kernels(fractal: str, backend: str, precision: str) -> List[str]:
    be = backend.upper()
    return sorted(k.op_name for k in _REGISTRY
                  if k.fractal == fractal and k.backend == be and k.precision == precision)


def iter_registry() -> Iterator[Tuple[KernelKey, Dict[str, Any]]]:
    return iter(sorted(_REGISTRY.items()))
