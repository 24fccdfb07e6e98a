from kernel_sources.vulkan import mandelbrot  # noqa: F401
