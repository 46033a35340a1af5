"""Tests for the logging setup."""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from librestore.modules import log


def test_child_loggers_share_root_handlers():
    logger = log.get_logger("restore")
    assert logger.name == "librestore.restore"
    assert logger.parent is logging.getLogger("librestore")


def test_set_level_keeps_file_handler_at_debug():
    root = logging.getLogger("librestore")
    try:
        log.set_level("error")
        for handler in root.handlers:
            expected = logging.DEBUG if isinstance(handler, RotatingFileHandler) else logging.ERROR
            assert handler.level == expected
    finally:
        log.set_level("info")


def test_set_level_rejects_unknown_level():
    with pytest.raises(ValueError):
        log.set_level("verboso")


def test_color_formatter_tags_child_logger_name():
    record = logging.LogRecord("librestore.package", logging.WARNING, __file__, 1, "oi %s", ("x",), None)
    text = log.ColorFormatter("%(message)s").format(record)
    assert "[librestore.package]" in text
    assert text.endswith("oi x")


def test_exception_logs_traceback(caplog):
    caplog.set_level(logging.ERROR, logger="librestore")
    try:
        raise RuntimeError("quebrou")
    except RuntimeError:
        log.exception("Erro ao executar comando")
    assert "Erro ao executar comando" in caplog.text
    assert "RuntimeError: quebrou" in caplog.text
