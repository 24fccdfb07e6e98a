from numba import njit

from kernel_sources.registry import register_kernel
from kernel_sources.cpu.mandelbrot.colour import encode_colour


ARG_SCALARS = ["iy", "width", "height"]
ARG_BUFFERS_IN = ["view"]  # [centre_x, centre_y, scale_y] in the working precision
ARG_SCALARS_TAIL = ["max_iter", "samples", "max_colours", "flags"]
ARG_BUFFERS_OUT = ["row_out"]

ARG_ORDER = ARG_SCALARS + ARG_BUFFERS_IN + ARG_SCALARS_TAIL + ARG_BUFFERS_OUT


@njit(cache=True, nogil=True)
def escape_time(x0, y0, max_iter, two, four):
    """
    Iterate z -> z^2 + c from z = c. Returns the iteration count at bailout,
    or max_iter + 1 when the budget runs out.
    """
    x = x0
    y = y0
    n = 0
    while x * x + y * y < four and n <= max_iter:
        xt = x * x - y * y + x0
        y = two * x * y + y0
        x = xt
        n += 1
    return n


@njit(cache=True, nogil=True)
def escape_row(iy, width, height, view, max_iter, samples, max_colours, flags, row_out):
    real = view.dtype.type
    two = real(2.0)
    four = real(4.0)

    centre_x = view[0]
    centre_y = view[1]
    scale_y = view[2]
    scale_x = scale_y * real(width) / real(height)

    dx = scale_x / real(width * samples)
    dy = scale_y / real(height * samples)
    left = centre_x - scale_x / two
    top = centre_y - scale_y / two

    n_sub = samples * samples
    for ix in range(width):
        total = 0
        for sy in range(samples):
            y0 = top + real(iy * samples + sy) * dy
            for sx in range(samples):
                x0 = left + real(ix * samples + sx) * dx
                n = escape_time(x0, y0, max_iter, two, four)
                # subsamples that exhausted the budget count as 0
                if n <= max_iter:
                    total += n
        row_out[ix] = encode_colour(total // n_sub, max_iter, max_colours, flags)


for _precision in ("f32", "f64"):
    register_kernel(
        fractal="mandelbrot",
        op_name="escape",
        backend="CPU",
        precision=_precision,
        func=escape_row,
        arg_order=ARG_ORDER,
    )
