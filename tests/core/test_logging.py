"""Tests for structured logging module."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import structlog

from eventstore.core.logging import (
    _NOISE_LOGGERS,
    _service_context,
    add_service_context,
    configure_logging,
    set_service_context,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _reset_logging():
    """Reset logging and service context between tests."""
    token = _service_context.set(None)
    yield
    _service_context.reset(token)
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    for name in _NOISE_LOGGERS:
        logging.getLogger(name).handlers.clear()


class TestServiceContext:
    def test_set_stores_name_in_contextvar(self):
        set_service_context("eventstore")
        assert _service_context.get() == "eventstore"

    def test_processor_injects_name(self):
        set_service_context("scheduler")
        assert add_service_context(None, "info", {"event": "x"})["service"] == "scheduler"

    def test_processor_handles_unset_context(self):
        assert add_service_context(None, "info", {"event": "x"})["service"] is None


class TestConfigureLogging:
    def test_text_format_installs_console_renderer(self):
        configure_logging(fmt="text")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
        assert isinstance(formatter.processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_format_installs_json_renderer(self):
        configure_logging(fmt="json")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_noise_loggers_suppressed(self):
        configure_logging()
        for name in _NOISE_LOGGERS:
            assert logging.getLogger(name).level >= logging.WARNING

    def test_log_level_applied(self):
        configure_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG


class TestLogDirectoryStructure:
    def test_file_handlers_created(self, tmp_path: Path):
        configure_logging(log_root=tmp_path, service_name="scheduler")

        assert (tmp_path / "eventstore").is_dir()
        assert (tmp_path / "uvicorn").is_dir()
        file_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].baseFilename.endswith("eventstore/scheduler.log")

    def test_uvicorn_logs_go_to_own_file(self, tmp_path: Path):
        configure_logging(log_root=tmp_path)

        handlers = logging.getLogger("uvicorn.access").handlers
        assert any(
            isinstance(h, logging.FileHandler) and h.baseFilename.endswith("uvicorn/eventstore.log")
            for h in handlers
        )
