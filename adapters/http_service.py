from __future__ import annotations

import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

from flask import Flask, Response, request, send_from_directory

from adapters.image_writer import ImageWriteError, save_raster
from backend.manager import BackendManager
from fractals.base import RenderParams
from fractals.errors import BackendUnavailableError, InvalidParamsError, RenderError
from rendering.render import render
from utils.enums import BackendType

logger = logging.getLogger(__name__)

IMAGES_ROUTE = "images"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, PATCH, OPTIONS",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Allow-Credentials": "true",
}


@dataclass
class ServiceConfig:
    host: str = "127.0.0.1"
    port: int = 8000
    images_dir: str = IMAGES_ROUTE
    defaults: RenderParams = field(default_factory=RenderParams)


@dataclass
class ServiceState:
    config: ServiceConfig
    manager: Optional[BackendManager] = None
    render_count: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)


def _fmt(value) -> str:
    """Format a parameter the way it appears in cache filenames (1.0 -> '1', True -> 'true')."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def cache_filename(params: RenderParams) -> str:
    return "-".join(_fmt(v) for v in (
        params.width, params.height, params.max_iter, params.max_colours,
        float(params.centre_x), float(params.centre_y), float(params.scale_y),
        params.samples, params.colour_flags, params.colourise,
    )) + ".png"


def save_cached(raster, width: int, height: int, path: str) -> None:
    """
    Write the image to a temporary file in the cache directory and move it
    onto `path`; on failure the temporary file is removed and `path` is left
    untouched.
    """
    directory, name = os.path.split(path)
    try:
        fd, tmp = tempfile.mkstemp(prefix=".partial-", suffix=os.path.splitext(name)[1], dir=directory or ".")
    except OSError as e:
        raise ImageWriteError(f"Could not create a file in {directory}: {e}") from e
    os.close(fd)
    try:
        save_raster(raster, width, height, tmp)
        os.replace(tmp, path)
    except OSError as e:
        _discard(tmp)
        raise ImageWriteError(f"Could not store {path}: {e}") from e
    except ImageWriteError:
        _discard(tmp)
        raise


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {text!r}")


# query parameter -> (RenderParams field, parser)
QUERY_FIELDS: Dict[str, tuple] = {
    "max_iter": ("max_iter", int),
    "width": ("width", int),
    "height": ("height", int),
    "threads": ("threads", int),
    "samples": ("samples", int),
    "scale": ("scale_y", float),
    "x": ("centre_x", float),
    "y": ("centre_y", float),
    "colourise": ("colourise", _parse_bool),
}


def params_from_query(args: Mapping[str, str], defaults: RenderParams) -> RenderParams:
    changes = {}
    bad = []
    for key, (name, parse) in QUERY_FIELDS.items():
        if key in args:
            try:
                changes[name] = parse(args[key])
            except ValueError:
                bad.append(f"{key}={args[key]!r}")
    try:
        ocl = _parse_bool(args["ocl"]) if "ocl" in args else False
        vulkan = _parse_bool(args["vulkan"]) if "vulkan" in args else False
    except ValueError as e:
        bad.append(str(e))
        ocl = vulkan = False
    if bad:
        raise InvalidParamsError("Invalid query parameters: " + ", ".join(bad))
    if ocl:
        changes["backend"] = BackendType.OPENCL
    elif vulkan:
        changes["backend"] = BackendType.VULKAN
    return defaults.replace(**changes)


def create_app(config: Optional[ServiceConfig] = None,
               manager: Optional[BackendManager] = None,
               renderer: Callable = render) -> Flask:
    """
    Build the Flask app. `GET /` renders (or reuses) a PNG named after every
    rendering parameter and answers with its path; `/images/<file>` serves it.
    """
    config = config or ServiceConfig()
    state = ServiceState(config=config, manager=manager)
    os.makedirs(config.images_dir, exist_ok=True)

    app = Flask(__name__)
    app.extensions["mandelbrot"] = state

    @app.after_request
    def add_cors_headers(response: Response) -> Response:
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value
        return response

    @app.route("/", methods=["GET"])
    def mandelbrot_rest():
        try:
            params = params_from_query(request.args, config.defaults)
        except InvalidParamsError as e:
            return Response(str(e), status=400, mimetype="text/plain")

        name = cache_filename(params)
        path = os.path.join(config.images_dir, name)
        url = f"{IMAGES_ROUTE}/{name}"

        with state.lock:
            if os.path.exists(path):
                logger.debug("Serving cached %s", path)
                return Response(url, mimetype="text/plain")
            try:
                raster = renderer(params, manager=state.manager)
                save_cached(raster, params.width, params.height, path)
            except InvalidParamsError as e:
                return Response(str(e), status=400, mimetype="text/plain")
            except BackendUnavailableError as e:
                logger.error("Backend unavailable: %s", e)
                return Response(str(e), status=503, mimetype="text/plain")
            except (RenderError, ImageWriteError) as e:
                logger.error("Render failed: %s", e)
                return Response(str(e), status=500, mimetype="text/plain")
            state.render_count += 1

        return Response(url, mimetype="text/plain")

    @app.route(f"/{IMAGES_ROUTE}/<path:filename>", methods=["GET"])
    def images(filename: str):
        return send_from_directory(os.path.abspath(config.images_dir), filename)

    return app


def serve(config: ServiceConfig) -> None:
    app = create_app(config)
    logger.info("Serving on http://%s:%d (images in %s)", config.host, config.port,
                os.path.abspath(config.images_dir))
    app.run(host=config.host, port=config.port, threaded=True)
