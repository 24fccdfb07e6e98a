from kernel_sources.cpu.mandelbrot import escape  # noqa: F401
