from __future__ import annotations

import argparse
import logging
from typing import Optional

from tqdm import tqdm

from adapters.http_service import ServiceConfig, serve
from adapters.image_writer import ImageWriteError, save_raster
from devices.manager import DeviceManager
from fractals import base
from fractals.base import RenderParams
from fractals.errors import BackendUnavailableError, InvalidParamsError, RenderError
from rendering.events import ProgressEvent
from rendering.render import render, shutdown
from utils.enums import BackendType, PrecisionMode
from utils.logging_setup import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "output.bmp"

EXIT_OK = 0
EXIT_WRITE_FAILED = 1
EXIT_BAD_ARGS = 2
EXIT_BACKEND_UNAVAILABLE = 3
EXIT_RENDER_FAILED = 4


def build_arg_parser() -> argparse.ArgumentParser:
    threads = base.default_threads()
    # -h is the height, so help is long-form only
    p = argparse.ArgumentParser(prog="mandelbrot", description="Mandelbrot generator", add_help=False)
    p.add_argument("--help", action="help", help="Show this help message and exit")
    p.add_argument("-w", "--width", type=int, default=base.DEFAULT_WIDTH,
                   help=f"Set width (default {base.DEFAULT_WIDTH})")
    p.add_argument("-h", "--height", type=int, default=base.DEFAULT_HEIGHT,
                   help=f"Set height (default {base.DEFAULT_HEIGHT})")
    p.add_argument("--centrex", type=float, default=base.DEFAULT_CENTRE_X,
                   help=f"Set centrex (default {base.DEFAULT_CENTRE_X})")
    p.add_argument("--centrey", type=float, default=base.DEFAULT_CENTRE_Y,
                   help=f"Set centrey (default {base.DEFAULT_CENTRE_Y})")
    p.add_argument("--scale", type=float, default=base.DEFAULT_SCALE_Y,
                   help=f"Set scale (default {base.DEFAULT_SCALE_Y})")
    p.add_argument("--iterations", type=int, default=base.DEFAULT_MAX_ITER,
                   help=f"Set maximum number of iterations (default {base.DEFAULT_MAX_ITER})")
    p.add_argument("--samples", type=int, default=base.DEFAULT_SAMPLES,
                   help=f"Set samples for supersampling (default {base.DEFAULT_SAMPLES})")
    p.add_argument("--colour", type=int, default=base.DEFAULT_COLOUR,
                   help=f"Set colour for image, a 0-7 RGB bit mask (default {base.DEFAULT_COLOUR})")
    p.add_argument("--colourise", action="store_true",
                   help="Use a different colour for each thread (default false)")
    p.add_argument("-j", "--threads", type=int, default=threads,
                   help=f"Set number of threads to use for processing (default {threads})")
    p.add_argument("--progress", action="store_true", help="Display progress bar (default false)")
    p.add_argument("--single", action="store_true", help="Render with 32-bit floats (default 64-bit)")
    gpu = p.add_mutually_exclusive_group()
    gpu.add_argument("--ocl", action="store_true", help="Use opencl instead of cpu (default false)")
    gpu.add_argument("--vulkan", action="store_true", help="Use vulkan instead of cpu (default false)")
    p.add_argument("--device", type=int, default=None, help="GPU device ordinal (default: first)")
    p.add_argument("--name", default=DEFAULT_FILENAME,
                   help=f"Set filename (default {DEFAULT_FILENAME}) supported formats are PNG, JPEG, BMP, and TIFF")
    p.add_argument("--service", action="store_true", help="Run as a REST service (default false)")
    p.add_argument("--host", default="127.0.0.1", help="Service bind address (default 127.0.0.1)")
    p.add_argument("--port", type=int, default=8000, help="Service port (default 8000)")
    p.add_argument("--images-dir", default="images", help="Service image cache directory (default images)")
    p.add_argument("--list-devices", action="store_true", help="List OpenCL and Vulkan devices and exit")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Log level (default INFO)")
    p.add_argument("--log-file", default=None, help="Also log to this rotating file")
    return p


def params_from_args(args: argparse.Namespace) -> RenderParams:
    if args.ocl:
        backend = BackendType.OPENCL
    elif args.vulkan:
        backend = BackendType.VULKAN
    else:
        backend = BackendType.CPU
    return RenderParams(
        width=args.width,
        height=args.height,
        centre_x=args.centrex,
        centre_y=args.centrey,
        scale_y=args.scale,
        max_iter=args.iterations,
        samples=args.samples,
        colour_flags=args.colour,
        colourise=args.colourise,
        threads=args.threads,
        backend=backend,
        precision=PrecisionMode.Single if args.single else PrecisionMode.Double,
        progress=args.progress,
        device=args.device,
    )


class ProgressBar:
    """tqdm bar driven by ProgressEvents, in whole percent."""

    def __init__(self) -> None:
        self._bar = tqdm(total=100, unit="%", leave=True)
        self._pos = 0

    def __call__(self, evt: ProgressEvent) -> None:
        pos = int(evt.fraction * 100)
        if pos > self._pos:
            self._bar.update(pos - self._pos)
            self._pos = pos

    def close(self) -> None:
        self._bar.close()


def main(argv: Optional[list] = None) -> int:
    try:
        args = build_arg_parser().parse_args(argv)
    except SystemExit as e:
        return EXIT_OK if e.code in (0, None) else EXIT_BAD_ARGS

    configure_logging(level=getattr(logging, args.log_level), log_file=args.log_file)

    if args.list_devices:
        for dev in DeviceManager().list():
            print(dev)
        return EXIT_OK

    params = params_from_args(args)

    if args.service:
        serve(ServiceConfig(host=args.host, port=args.port, images_dir=args.images_dir, defaults=params))
        return EXIT_OK

    bar = ProgressBar() if params.progress else None
    try:
        raster = render(params, on_progress=bar)
    except InvalidParamsError as e:
        logger.error("%s", e)
        return EXIT_BAD_ARGS
    except BackendUnavailableError as e:
        logger.error("%s", e)
        return EXIT_BACKEND_UNAVAILABLE
    except RenderError as e:
        logger.error("Render failed: %s", e)
        return EXIT_RENDER_FAILED
    finally:
        if bar is not None:
            bar.close()
        shutdown()

    try:
        save_raster(raster, params.width, params.height, args.name)
    except ImageWriteError as e:
        logger.error("Error: %s", e)
        return EXIT_WRITE_FAILED
    logger.info("Wrote %s", args.name)
    return EXIT_OK
