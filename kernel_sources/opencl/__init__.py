from kernel_sources.opencl import mandelbrot  # noqa: F401
