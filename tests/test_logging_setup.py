"""
test_logging_setup.py
"""
import logging

from utils.logging_setup import configure_logging


def test_configure_logging_writes_file(tmp_path):
    log_file = tmp_path / "render.log"
    root = configure_logging(level=logging.DEBUG, log_file=str(log_file))
    try:
        assert len(root.handlers) == 2
        logging.getLogger("rendering.render").info("time taken: %dms", 12)
        for h in root.handlers:
            h.flush()
        text = log_file.read_text(encoding="utf-8")
        assert "INFO rendering.render - time taken: 12ms" in text
    finally:
        for h in list(root.handlers):
            h.close()
            root.removeHandler(h)


def test_configure_logging_replaces_handlers():
    root = configure_logging(level=logging.WARNING)
    root = configure_logging(level=logging.WARNING)
    try:
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
