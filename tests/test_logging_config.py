"""Tests for relay logging setup."""

import logging
import os

import pytest

from mcp_pointer.logging_config import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_logs_go_to_stderr_not_stdout(capsys, restore_root_logger):
    """stdout stays clean for the MCP transport."""
    setup_logging(level="INFO")

    logging.getLogger("mcp_pointer.test").info("relay ready")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "relay ready" in captured.err
    assert f"pid {os.getpid()}" in captured.err


def test_debug_overrides_level(restore_root_logger):
    """--debug wins over the configured level."""
    setup_logging(level="ERROR", debug=True)

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("mcp").level == logging.DEBUG


def test_unknown_level_falls_back_to_info(restore_root_logger):
    setup_logging(level="chatty")

    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING
