from kernel_sources.vulkan.mandelbrot import escape  # noqa: F401
