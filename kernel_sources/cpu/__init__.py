from kernel_sources.cpu import mandelbrot  # noqa: F401
