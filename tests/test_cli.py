"""
test_cli.py
"""
import pytest
from PIL import Image

from adapters.cli import (EXIT_BAD_ARGS, EXIT_OK, EXIT_WRITE_FAILED, build_arg_parser, main,
                          params_from_args)
from utils.enums import BackendType, PrecisionMode

SMALL = ["-w", "16", "-h", "12", "--iterations", "32", "-j", "2", "--log-level", "WARNING"]


def test_parser_defaults():
    params = params_from_args(build_arg_parser().parse_args([]))
    assert (params.width, params.height) == (1024, 768)
    assert (params.centre_x, params.centre_y, params.scale_y) == (-0.75, 0.0, 2.5)
    assert params.max_iter == 256 and params.samples == 1 and params.colour_flags == 7
    assert params.backend == BackendType.CPU
    assert params.precision == PrecisionMode.Double


def test_parser_maps_flags():
    args = build_arg_parser().parse_args(
        ["-w", "64", "-h", "32", "--centrex", "0.25", "--centrey", "-0.1", "--scale", "0.5",
         "--iterations", "1000", "--samples", "3", "--colour", "5", "--colourise",
         "--threads", "4", "--progress", "--single", "--ocl", "--device", "1"])
    params = params_from_args(args)
    assert (params.width, params.height) == (64, 32)
    assert (params.centre_x, params.centre_y, params.scale_y) == (0.25, -0.1, 0.5)
    assert params.max_iter == 1000 and params.samples == 3
    assert params.colour_flags == 5 and params.colourise
    assert params.threads == 4 and params.progress
    assert params.precision == PrecisionMode.Single
    assert params.backend == BackendType.OPENCL and params.device == 1
    assert params_from_args(build_arg_parser().parse_args(["--vulkan"])).backend == BackendType.VULKAN


def test_writes_image(tmp_path):
    path = tmp_path / "out.png"
    assert main(SMALL + ["--name", str(path)]) == EXIT_OK
    with Image.open(path) as img:
        assert img.size == (16, 12)


def test_progress_flag(tmp_path):
    path = tmp_path / "out.bmp"
    assert main(SMALL + ["--progress", "--name", str(path)]) == EXIT_OK
    assert path.exists()


def test_bad_colour_is_argument_error(tmp_path):
    path = tmp_path / "out.png"
    assert main(SMALL + ["--colour", "9", "--name", str(path)]) == EXIT_BAD_ARGS
    assert not path.exists()


def test_zero_width_is_argument_error(tmp_path):
    assert main(["-w", "0", "--name", str(tmp_path / "out.png")]) == EXIT_BAD_ARGS


@pytest.mark.parametrize('argv', [["--bogus"], ["--ocl", "--vulkan"], ["-w", "wide"]])
def test_unparseable_arguments(argv):
    assert main(argv) == EXIT_BAD_ARGS


def test_help_exits_ok(capsys):
    assert main(["--help"]) == EXIT_OK
    assert "--centrex" in capsys.readouterr().out


def test_unknown_extension_is_write_failure(tmp_path):
    assert main(SMALL + ["--name", str(tmp_path / "out.xyz")]) == EXIT_WRITE_FAILED


def test_render_failure_has_its_own_exit_code(tmp_path, monkeypatch):
    import adapters.cli as cli
    from fractals.errors import RenderError

    def failing_render(params, **kwargs):
        raise RenderError("CPU worker 0 failed: boom")

    monkeypatch.setattr(cli, "render", failing_render)
    path = tmp_path / "out.png"
    assert main(SMALL + ["--name", str(path)]) == cli.EXIT_RENDER_FAILED
    assert not path.exists()
