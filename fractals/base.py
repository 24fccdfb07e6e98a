import os
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

import numpy as np

from utils.enums import BackendType, PrecisionMode


DEFAULT_WIDTH = 1024
DEFAULT_HEIGHT = 768
DEFAULT_CENTRE_X = -0.75
DEFAULT_CENTRE_Y = 0.0
DEFAULT_SCALE_Y = 2.5
DEFAULT_MAX_ITER = 256
DEFAULT_MAX_COLOURS = 256
DEFAULT_SAMPLES = 1
DEFAULT_COLOUR = 7

# Fixed in the GPU kernels
GPU_MAX_COLOURS = 256
GPU_COLOUR_FLAGS = 7
GPU_LOCAL_SIZE = (8, 8)


def default_threads() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class RenderParams:
    """
    Immutable description of a single render.
    Width and height give the raster size in pixels; centre_x, centre_y and
    scale_y place the viewport in the complex plane (scale_x is derived from
    the aspect ratio). Max_iter caps the escape-time loop, max_colours sets
    the colour resolution (power of two) and samples is the side of the
    supersampling grid.
    Colour_flags is a 3-bit R/G/B lane mask; colourise replaces it with a
    per-worker hue on the CPU backend.
    """
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    centre_x: float = DEFAULT_CENTRE_X
    centre_y: float = DEFAULT_CENTRE_Y
    scale_y: float = DEFAULT_SCALE_Y
    max_iter: int = DEFAULT_MAX_ITER
    max_colours: int = DEFAULT_MAX_COLOURS
    samples: int = DEFAULT_SAMPLES
    colour_flags: int = DEFAULT_COLOUR
    colourise: bool = False
    threads: int = field(default_factory=default_threads)
    backend: BackendType = BackendType.CPU
    precision: PrecisionMode = PrecisionMode.Double
    progress: bool = False
    device: Optional[int] = None

    @property
    def scale_x(self) -> float:
        return self.scale_y * self.width / self.height

    @property
    def dtype(self) -> type:
        return np.float64 if self.precision == PrecisionMode.Double else np.float32

    @property
    def precision_key(self) -> str:
        return "f64" if self.precision == PrecisionMode.Double else "f32"

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def viewport(self) -> Tuple[float, float, float, float]:
        """(min_x, max_x, min_y, max_y) of the rendered area."""
        half_x = self.scale_x / 2
        half_y = self.scale_y / 2
        return (self.centre_x - half_x, self.centre_x + half_x,
                self.centre_y - half_y, self.centre_y + half_y)

    def replace(self, **changes) -> "RenderParams":
        return replace(self, **changes)

    def new_raster(self) -> np.ndarray:
        return np.zeros(self.pixel_count, dtype=np.uint32)

    def __str__(self) -> str:
        return (f"{self.width}x{self.height} centre=({self.centre_x}, {self.centre_y}) "
                f"scale={self.scale_y} iterations={self.max_iter} colours={self.max_colours} "
                f"samples={self.samples} colour={self.colour_flags} colourise={self.colourise} "
                f"threads={self.threads} backend={self.backend.name} precision={self.precision.name}")
