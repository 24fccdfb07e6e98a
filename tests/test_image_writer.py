"""
test_image_writer.py
"""
import numpy as np
import pytest
from PIL import Image

from adapters.image_writer import ImageWriteError, raster_to_rgb, save_raster


def test_raster_to_rgb_splits_lanes():
    raster = np.array([0x00332211, 0x00FF0000, 0x0000FF00, 0x000000FF], dtype=np.uint32)
    rgb = raster_to_rgb(raster, 2, 2)
    assert rgb.shape == (2, 2, 3)
    assert tuple(rgb[0, 0]) == (0x11, 0x22, 0x33)
    assert tuple(rgb[0, 1]) == (0, 0, 255)
    assert tuple(rgb[1, 0]) == (0, 255, 0)
    assert tuple(rgb[1, 1]) == (255, 0, 0)


@pytest.mark.parametrize('name', ['out.png', 'out.bmp', 'out.tiff', 'OUT.TIF'])
def test_save_lossless_formats(tmp_path, name):
    raster = (np.arange(12, dtype=np.uint32) * 0x010101)
    path = tmp_path / name
    save_raster(raster, 4, 3, str(path))
    with Image.open(path) as img:
        assert img.size == (4, 3)
        assert img.convert("RGB").getpixel((1, 0)) == (1, 1, 1)
        assert img.convert("RGB").getpixel((3, 2)) == (11, 11, 11)


def test_save_jpeg(tmp_path):
    path = tmp_path / "out.jpg"
    save_raster(np.zeros(64, dtype=np.uint32), 8, 8, str(path))
    with Image.open(path) as img:
        assert img.format == "JPEG"


def test_unknown_extension(tmp_path):
    with pytest.raises(ImageWriteError, match="Unsupported"):
        save_raster(np.zeros(4, dtype=np.uint32), 2, 2, str(tmp_path / "out.xyz"))


def test_unwritable_path(tmp_path):
    with pytest.raises(ImageWriteError, match="Could not write"):
        save_raster(np.zeros(4, dtype=np.uint32), 2, 2, str(tmp_path / "missing" / "out.png"))
