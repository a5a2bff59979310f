"""Tests for logging setup."""

import logging
from pathlib import Path

from mnemo.core.logging import get_logger, setup_logging


def test_get_logger_is_namespaced():
    assert get_logger("memory.store").name == "mnemo.memory.store"


def test_setup_logging_writes_file(tmp_path: Path):
    log_file = tmp_path / "logs" / "mnemo.log"
    logger = setup_logging(logging.DEBUG, log_file=log_file)
    try:
        get_logger("test").info("hello from the store")
        for handler in logger.handlers:
            handler.flush()
        assert "hello from the store" in log_file.read_text()
        assert "| INFO     | mnemo.test |" in log_file.read_text()
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)


def test_setup_logging_is_idempotent(tmp_path: Path):
    """Reconfiguring replaces handlers instead of stacking them."""
    log_file = tmp_path / "mnemo.log"
    setup_logging(logging.INFO)
    logger = setup_logging(logging.INFO, log_file=log_file)
    try:
        assert len(logger.handlers) == 2
        get_logger("test").info("logged once")
        for handler in logger.handlers:
            handler.flush()
        assert log_file.read_text().count("logged once") == 1
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)
