from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import numpy as np

from backend.manager import BackendManager
from backend.model.be_base import ProgressCallback
from fractals.base import RenderParams
from fractals.param_validator import validate_params, validate_raster

logger = logging.getLogger(__name__)

_manager: Optional[BackendManager] = None
_manager_lock = threading.Lock()


def get_manager() -> BackendManager:
    """Process-wide backend cache shared by the CLI and the HTTP service."""
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = BackendManager()
        return _manager


def shutdown() -> None:
    global _manager
    with _manager_lock:
        if _manager is not None:
            _manager.close_all()
            _manager = None


def render(params: RenderParams,
           out: Optional[np.ndarray] = None,
           *,
           on_progress: Optional[ProgressCallback] = None,
           manager: Optional[BackendManager] = None) -> np.ndarray:
    """
    Render `params` into `out` (allocated when omitted) and return the raster:
    a row-major uint32 array of width * height pixels, 0x00BBGGRR each.

    The backend is picked from `params.backend`; every backend fills `out`
    completely before returning. Progress events are only delivered when
    `params.progress` is set and the backend can report them.

    Raises RenderError (InvalidParamsError / BackendUnavailableError).
    """
    validate_params(params)
    if out is None:
        out = params.new_raster()
    validate_raster(params, out)

    manager = manager or get_manager()
    logger.info("Rendering %s", params)
    start = time.perf_counter()
    manager.render(params, out, on_progress if params.progress else None)
    logger.info("time taken: %dms", (time.perf_counter() - start) * 1000)
    return out
