from __future__ import annotations

import os
from typing import Dict

import numpy as np
from PIL import Image

# extension -> Pillow format
FORMATS: Dict[str, str] = {
    ".png": "PNG",
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".bmp": "BMP",
    ".tif": "TIFF",
    ".tiff": "TIFF",
}


class ImageWriteError(Exception):
    """The raster could not be encoded or written."""


def raster_to_rgb(raster: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Split 0x00BBGGRR words into an (height, width, 3) uint8 RGB array.
    """
    words = np.asarray(raster, dtype=np.uint32).reshape(height, width)
    rgb = np.empty((height, width, 3), dtype=np.uint8)
    rgb[..., 0] = words & 0xFF
    rgb[..., 1] = (words >> 8) & 0xFF
    rgb[..., 2] = (words >> 16) & 0xFF
    return rgb


def raster_to_image(raster: np.ndarray, width: int, height: int) -> Image.Image:
    return Image.fromarray(raster_to_rgb(raster, width, height))


def save_raster(raster: np.ndarray, width: int, height: int, path: str) -> None:
    """
    Encode the raster with the format picked by the file extension.
    Raises ImageWriteError on an unknown extension or any write failure.
    """
    ext = os.path.splitext(path)[1].lower()
    fmt = FORMATS.get(ext)
    if fmt is None:
        raise ImageWriteError(f"Unsupported image format '{ext or path}'; "
                              f"use one of {', '.join(sorted(FORMATS))}")
    try:
        raster_to_image(raster, width, height).save(path, format=fmt)
    except (OSError, ValueError) as e:
        raise ImageWriteError(f"Could not write {path}: {e}") from e
