"""Tests for logger setup."""

import logging

from src.utils.logging import setup_logger


def test_logger_writes_to_configured_directory(tmp_path):
    logger = setup_logger("tech_content_rag.test_file", level="debug", log_dir=tmp_path)
    try:
        assert logger.level == logging.DEBUG
        logger.debug("embedding pipeline started")
        for handler in logger.handlers:
            handler.flush()

        assert "embedding pipeline started" in (tmp_path / "app.log").read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_handlers_are_attached_once(tmp_path):
    first = setup_logger("tech_content_rag.test_once", log_dir=tmp_path)
    try:
        second = setup_logger("tech_content_rag.test_once", log_dir=tmp_path)
        assert first is second
        assert len(second.handlers) == 2
    finally:
        for handler in list(first.handlers):
            handler.close()
            first.removeHandler(handler)


def test_unknown_level_defaults_to_info(tmp_path):
    logger = setup_logger("tech_content_rag.test_level", level="verbose", log_dir=tmp_path)
    try:
        assert logger.level == logging.INFO
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
