from kernel_sources.opencl.mandelbrot import escape  # noqa: F401
