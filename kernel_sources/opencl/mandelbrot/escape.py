from kernel_sources.registry import register_kernel

SRC = r"""
#ifdef USE_DOUBLE
  #pragma OPENCL EXTENSION cl_khr_fp64 : enable
  typedef double real_t;
#else
  typedef float  real_t;
#endif

// no fused multiply-add: results must match the host kernels bit for bit
#pragma OPENCL FP_CONTRACT OFF

#define MAX_COLOURS 256u
#define FLAGS 7u

__kernel void mandelbrot(
    const uint max_iter,
    const real_t centre_x, const real_t centre_y, const real_t scale_y,
    const uint samples,
    __global uint* out)
{
    const uint iy = get_global_id(0);
    const uint ix = get_global_id(1);
    const uint height = get_global_size(0);
    const uint width = get_global_size(1);

    const real_t two = (real_t)2;
    const real_t four = (real_t)4;
    const real_t scale_x = scale_y * (real_t)width / (real_t)height;
    const real_t dx = scale_x / (real_t)(width * samples);
    const real_t dy = scale_y / (real_t)(height * samples);
    const real_t left = centre_x - scale_x / two;
    const real_t top = centre_y - scale_y / two;

    uint total = 0;
    for (uint sy = 0; sy < samples; ++sy) {
        const real_t y0 = top + (real_t)(iy * samples + sy) * dy;
        for (uint sx = 0; sx < samples; ++sx) {
            const real_t x0 = left + (real_t)(ix * samples + sx) * dx;
            real_t x = x0;
            real_t y = y0;
            uint n = 0;
            while (x * x + y * y < four && n <= max_iter) {
                const real_t xt = x * x - y * y + x0;
                y = two * x * y + y0;
                x = xt;
                ++n;
            }
            if (n <= max_iter) total += n;
        }
    }

    const uint avg = total / (samples * samples);
    const uint c = (avg * MAX_COLOURS / max_iter) & (MAX_COLOURS - 1u);
    out[iy * width + ix] = c * (((FLAGS & 4u) << 14) | ((FLAGS & 2u) << 7) | (FLAGS & 1u));
}
"""

KERNEL_NAME = "mandelbrot"

ARG_SCALARS = ["max_iter", "centre_x", "centre_y", "scale_y", "samples"]
ARG_BUFFERS_OUT = ["out"]

ARG_ORDER = ARG_SCALARS + ARG_BUFFERS_OUT

# IEEE division for the host-matching dx/dy; the backend drops it on devices
# that do not report CORRECTLY_ROUNDED_DIVIDE_SQRT
FP32_DIVIDE_OPTION = "-cl-fp32-correctly-rounded-divide-sqrt"

opts_f32 = [FP32_DIVIDE_OPTION]
opts_f64 = opts_f32 + ["-D", "USE_DOUBLE=1"]

for _precision, _opts in (("f32", opts_f32), ("f64", opts_f64)):
    register_kernel(
        fractal="mandelbrot",
        op_name="escape",
        backend="opencl",
        precision=_precision,
        func={"src": SRC, "kernel_name": KERNEL_NAME, "build_options": _opts},
        arg_order=ARG_ORDER,
    )
