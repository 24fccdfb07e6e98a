import numpy as np

from kernel_sources.registry import register_kernel

# WGSL template; {real} is f32 or f64
SRC = r"""
alias real = {real};

struct Params {{
    width: u32,
    height: u32,
    samples: u32,
    max_iter: u32,
    scale_y: real,
    centre_x: real,
    centre_y: real,
}}

@group(0) @binding(0) var<storage, read_write> data: array<u32>;
@group(1) @binding(0) var<storage, read> params: Params;

const MAX_COLOURS: u32 = 256u;
const FLAGS: u32 = 7u;

@compute @workgroup_size(8, 8, 1)
fn main(@builtin(global_invocation_id) gid: vec3<u32>) {{
    let ix = gid.x;
    let iy = gid.y;
    if (ix >= params.width || iy >= params.height) {{
        return;
    }}

    let two = real(2);
    let four = real(4);
    let scale_x = params.scale_y * real(params.width) / real(params.height);
    let dx = scale_x / real(params.width * params.samples);
    let dy = params.scale_y / real(params.height * params.samples);
    let left = params.centre_x - scale_x / two;
    let top = params.centre_y - params.scale_y / two;

    var total: u32 = 0u;
    for (var sy: u32 = 0u; sy < params.samples; sy = sy + 1u) {{
        let y0 = top + real(iy * params.samples + sy) * dy;
        for (var sx: u32 = 0u; sx < params.samples; sx = sx + 1u) {{
            let x0 = left + real(ix * params.samples + sx) * dx;
            var x = x0;
            var y = y0;
            var n: u32 = 0u;
            while (x * x + y * y < four && n <= params.max_iter) {{
                let xt = x * x - y * y + x0;
                y = two * x * y + y0;
                x = xt;
                n = n + 1u;
            }}
            if (n <= params.max_iter) {{
                total = total + n;
            }}
        }}
    }}

    let avg = total / (params.samples * params.samples);
    let c = (avg * MAX_COLOURS / params.max_iter) & (MAX_COLOURS - 1u);
    data[iy * params.width + ix] = c * (((FLAGS & 4u) << 14u) | ((FLAGS & 2u) << 7u) | (FLAGS & 1u));
}}
"""

KERNEL_NAME = "main"

# Host mirror of the Params struct: 64-bit members land on 8-byte offsets
# after the four u32 fields, so the packed record already matches WGSL layout.
PARAMS_FIELDS = ["width", "height", "samples", "max_iter", "scale_y", "centre_x", "centre_y"]


def params_dtype(real: type) -> np.dtype:
    return np.dtype([
        ("width", "<u4"), ("height", "<u4"), ("samples", "<u4"), ("max_iter", "<u4"),
        ("scale_y", np.dtype(real).newbyteorder("<")),
        ("centre_x", np.dtype(real).newbyteorder("<")),
        ("centre_y", np.dtype(real).newbyteorder("<")),
    ])


ARG_SCALARS = PARAMS_FIELDS
ARG_BUFFERS_IN = ["params"]
ARG_BUFFERS_OUT = ["data"]

ARG_ORDER = ARG_BUFFERS_OUT + ARG_BUFFERS_IN

for _precision, _real, _wgsl, _features in (("f32", np.float32, "f32", []),
                                            ("f64", np.float64, "f64", ["shader-f64"])):
    register_kernel(
        fractal="mandelbrot",
        op_name="escape",
        backend="vulkan",
        precision=_precision,
        func={"src": SRC.format(real=_wgsl), "kernel_name": KERNEL_NAME},
        arg_order=ARG_ORDER,
        scalars=ARG_SCALARS,
        params_dtype=params_dtype(_real),
        required_features=_features,
    )
