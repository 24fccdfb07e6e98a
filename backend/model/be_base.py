from abc import ABC, abstractmethod
from typing import Callable, Optional
import logging

import numpy as np

from fractals.base import RenderParams
from rendering.events import ProgressEvent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class Backend(ABC):
    """
    A base class for Mandelbrot rendering backends.
    """
    name: str

    @abstractmethod
    def compile(self, params: RenderParams) -> None:
        ...

    @abstractmethod
    def render(self,
               params: RenderParams,
               out: np.ndarray,
               on_progress: Optional[ProgressCallback] = None
               ) -> None:
        """Fill `out` (uint32, width * height) with the raster for `params`."""
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __del__(self):
        try:
            self.close()
        except Exception:
            pass

    def _warn_ignored_colours(self, params: RenderParams) -> None:
        if params.colour_flags != 7 or params.colourise:
            logger.warning("%s renders in white; colour=%d colourise=%s are ignored",
                           self.name, params.colour_flags, params.colourise)
        if params.progress:
            logger.info("%s cannot report progress; no progress bar will be shown", self.name)
