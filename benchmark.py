"""
Benchmark the Mandelbrot renderer across the available backends (CPU / OpenCL / Vulkan).

Usage examples:
  python benchmark.py --res 800x600,1280x720 --precision f64 --max-iter 1000 --samples 2 --runs 5
  python benchmark.py --backends cpu,opencl --threads 4
"""

import argparse
import csv
import logging
import os
import platform
import time
from typing import List, Optional, Tuple

from backend.manager import BackendManager
from fractals.base import RenderParams, default_threads
from fractals.errors import RenderError
from rendering.render import render
from utils.backend_helpers import available_backends
from utils.enums import BackendType, PrecisionMode
from utils.logging_setup import configure_logging

logger = logging.getLogger(__name__)

# Fixed viewport: the whole set
CENTRE_X, CENTRE_Y, SCALE_Y = -0.5, 0.0, 3.0


def parse_resolution_list(res_str: str) -> List[Tuple[int, int]]:
    """
    Parse resolutions like "800x600,1280x720".
    """
    if not res_str:
        return [(800, 600), (1280, 720), (1920, 1080)]
    out: List[Tuple[int, int]] = []
    for token in res_str.split(','):
        token = token.strip().lower()
        if not token:
            continue
        w, h = token.split('x')
        out.append((int(w), int(h)))
    return out


def parse_backends(tags: str) -> List[BackendType]:
    if not tags:
        return available_backends()
    out = []
    for tag in tags.split(','):
        if tag.strip():
            out.append(BackendType.from_name(tag))
    return out


def benchmark_combo(manager: BackendManager,
                    params: RenderParams,
                    runs: int,
                    warmup: int = 1) -> Tuple[float, float]:
    """
    Runs warmups (not timed), then 'runs' timed renders.
    Returns (avg_time_seconds, fps).
    """
    out = params.new_raster()
    for _ in range(max(0, warmup)):
        render(params, out, manager=manager)

    times = []
    for _ in range(runs):
        t0 = time.perf_counter()
        render(params, out, manager=manager)
        times.append(time.perf_counter() - t0)

    avg = sum(times) / len(times)
    fps = 1.0 / avg if avg > 0 else 0.0
    return avg, fps


def write_csv_row(writer, resolution: Tuple[int, int],
                  results: List[Optional[Tuple[float, float]]]) -> None:
    row = [f"{resolution[0]}x{resolution[1]}"]
    for result in results:
        if result is None:
            row.extend(["n/a", "n/a"])
        else:
            avg, fps = result
            row.extend([f"{avg:.4f}", f"{fps:.2f}"])
    writer.writerow(row)


def main():
    p = argparse.ArgumentParser(description="Benchmark the Mandelbrot renderer.")
    p.add_argument("--backends", type=str, default="",
                   help="Comma separated list of cpu,opencl,vulkan (default: every available backend)")
    p.add_argument("--res", type=str, default="800x600,1280x720,1920x1080",
                   help="Comma separated WxH list")
    p.add_argument("--precision", type=str, default="f64", choices=["f32", "f64"])
    p.add_argument("--max-iter", type=int, default=500)
    p.add_argument("--samples", type=int, default=1)
    p.add_argument("--threads", type=int, default=default_threads())
    p.add_argument("--runs", type=int, default=3)
    p.add_argument("--warmup", type=int, default=1)
    p.add_argument("--csv", type=str, default="benchmark_results.csv")
    args = p.parse_args()

    configure_logging(level=logging.WARNING)

    backends = parse_backends(args.backends)
    resolutions = parse_resolution_list(args.res)
    precision = PrecisionMode.Single if args.precision == "f32" else PrecisionMode.Double
    cpu_info = platform.processor() or platform.machine() or "Unknown CPU"

    print("=== Hardware Summary ===")
    print("CPU:", cpu_info)
    print("Backends:", ", ".join(b.name for b in backends))
    print()

    manager = BackendManager()
    if os.path.exists(args.csv):
        os.remove(args.csv)
    try:
        with open(args.csv, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["Hardware Summary"])
            writer.writerow(["CPU", cpu_info])
            writer.writerow([])

            header = ["Resolution"]
            for b in backends:
                header.extend([f"{b.name} Time (s)", f"{b.name} FPS"])
            writer.writerow(header)

            print(f"Settings: precision={args.precision}, max_iter={args.max_iter}, "
                  f"samples={args.samples}, threads={args.threads}")
            print()

            for (w, h) in resolutions:
                print(f"=== {w}x{h} ===")
                results: List[Optional[Tuple[float, float]]] = []
                for b in backends:
                    params = RenderParams(width=w, height=h,
                                          centre_x=CENTRE_X, centre_y=CENTRE_Y, scale_y=SCALE_Y,
                                          max_iter=args.max_iter, samples=args.samples,
                                          threads=args.threads, backend=b, precision=precision)
                    try:
                        avg, fps = benchmark_combo(manager, params, args.runs, args.warmup)
                        print(f"{b.name:>12}  avg={avg:.4f}s  fps={fps:.2f}")
                        results.append((avg, fps))
                    except RenderError as e:
                        print(f"{b.name:>12}  FAIL: {e}")
                        results.append(None)
                write_csv_row(writer, (w, h), results)
                print()
    finally:
        manager.close_all()

    print(f"Benchmark results saved to {args.csv}")


if __name__ == "__main__":
    main()
