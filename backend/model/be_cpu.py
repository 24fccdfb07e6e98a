import logging
import queue
import threading
from typing import Any, Dict, Optional

import numpy as np

from fractals.base import RenderParams
from fractals.errors import InvalidParamsError, RenderError
from fractals.mandelbrot import MandelbrotFractal
from fractals.param_validator import validate_params, validate_raster
from backend.model.be_base import Backend, ProgressCallback
from rendering.events import ProgressEvent
from utils.enums import BackendType

logger = logging.getLogger(__name__)


def worker_flags(colour_flags: int, colourise: bool, worker_id: Optional[int]) -> int:
    """
    Colour flags a worker encodes with: its own hue (1..7) when colourising,
    otherwise the requested channel mask.
    """
    if not colourise:
        return colour_flags
    if worker_id is None or worker_id < 0:
        raise InvalidParamsError(f"colourise needs a valid worker id, got {worker_id!r}")
    return (worker_id % 7) + 1


class WorkTicket:
    """
    Shared row counter. claim() is an atomic fetch-and-increment; rows past the
    end of the raster tell the worker to stop.
    """
    def __init__(self) -> None:
        self._next_row = 0
        self._lock = threading.Lock()

    def claim(self) -> int:
        with self._lock:
            row = self._next_row
            self._next_row += 1
        return row


class _ProducerClosed:
    def __init__(self, worker_id: int, error: Optional[BaseException] = None) -> None:
        self.worker_id = worker_id
        self.error = error


class CpuBackend(Backend):
    """
    Backend for CPU rendering: a pool of threads claims rows from a WorkTicket,
    runs the nogil numba row kernel and sends (first_index, colours) batches to
    the collector, which is the only writer of the output raster.
    """
    name = "CPU"

    def __init__(self):
        self._fractal = MandelbrotFractal()
        self._kernel = None
        self._arg_order = None
        self._precision_key: Optional[str] = None
        self._warmed_up = set()

        # Warmup configuration
        self._wu_params = RenderParams(width=8, height=8, max_iter=16, samples=1, threads=1)

    def compile(self, params: RenderParams) -> None:
        """
        Pull the row kernel for the requested precision from the registry and
        make numba compile it before any worker starts.
        """
        meta = self._fractal.get_kernel(params, self.name)
        self._kernel = meta["func"]
        self._arg_order = list(meta["arg_order"])
        self._precision_key = params.precision_key
        self._warmup(params)

    def _warmup(self, params: RenderParams) -> None:
        if params.precision_key in self._warmed_up or self._kernel is None:
            return
        st = self._wu_params.replace(precision=params.precision)
        row = np.empty(st.width, dtype=np.uint32)
        self._kernel(*self._ordered(self._fractal.build_arg_values(st, self.name), 0, 7, row))
        self._warmed_up.add(params.precision_key)

    def _ordered(self, args: Dict[str, Any], iy: int, flags: int, row: np.ndarray) -> list:
        arg_map = dict(args, iy=iy, flags=flags, row_out=row)
        return [arg_map[name] for name in self._arg_order]

    def render(self,
               params: RenderParams,
               out: np.ndarray,
               on_progress: Optional[ProgressCallback] = None) -> None:
        validate_params(params, backend_hint=BackendType.CPU)
        validate_raster(params, out)
        if self._kernel is None or self._precision_key != params.precision_key:
            self.compile(params)

        args = self._fractal.build_arg_values(params, self.name)
        ticket = WorkTicket()
        channel: "queue.SimpleQueue" = queue.SimpleQueue()
        abort = threading.Event()

        workers = [
            threading.Thread(target=self._worker,
                             args=(i, params, args, ticket, channel, abort),
                             name=f"mandelbrot-cpu-{i}",
                             daemon=True)
            for i in range(params.threads)
        ]
        for t in workers:
            t.start()

        try:
            self._collect(params, out, channel, len(workers), abort, on_progress)
        finally:
            abort.set()
            for t in workers:
                t.join()

    def _worker(self,
                worker_id: int,
                params: RenderParams,
                args: Dict[str, Any],
                ticket: WorkTicket,
                channel: "queue.SimpleQueue",
                abort: threading.Event) -> None:
        try:
            flags = worker_flags(params.colour_flags, params.colourise, worker_id)
            width, height = params.width, params.height
            row = np.empty(width, dtype=np.uint32)
            while not abort.is_set():
                iy = ticket.claim()
                if iy >= height:
                    break
                self._kernel(*self._ordered(args, iy, flags, row))
                channel.put((iy * width, row.copy()))
        except Exception as exc:
            channel.put(_ProducerClosed(worker_id, exc))
            return
        channel.put(_ProducerClosed(worker_id))

    @staticmethod
    def _collect(params: RenderParams,
                 out: np.ndarray,
                 channel: "queue.SimpleQueue",
                 producers: int,
                 abort: threading.Event,
                 on_progress: Optional[ProgressCallback]) -> None:
        """
        Drain the channel into `out` until every producer has closed.
        Writes are indexed, so arrival order does not matter.
        """
        total = params.pixel_count
        step = max(total // 100, 1)
        written = 0
        reported = 0
        failure: Optional[_ProducerClosed] = None

        while producers:
            msg = channel.get()
            if isinstance(msg, _ProducerClosed):
                producers -= 1
                if msg.error is not None and failure is None:
                    failure = msg
                    abort.set()
                continue
            index, colours = msg
            out[index:index + colours.size] = colours
            written += colours.size
            if on_progress is not None and (written // step > reported or written == total):
                reported = written // step
                on_progress(ProgressEvent(done=written, total=total))

        if failure is not None:
            if isinstance(failure.error, RenderError):
                raise failure.error
            raise RenderError(f"CPU worker {failure.worker_id} failed: {failure.error}") from failure.error
        if written != total:
            raise RenderError(f"CPU render wrote {written} of {total} pixels")

    def close(self) -> None:
        self._kernel = None
        self._arg_order = None
        self._precision_key = None
