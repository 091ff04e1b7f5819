"""
Tests for logging helpers in superloader.logging.
"""

import logging

import pytest
import structlog

from superloader.logging import logging_context, resolve_log_level, setup_logging


def test_resolve_log_level_defaults_to_warning():
    """Test the default package log level."""
    assert resolve_log_level() == logging.WARNING


def test_resolve_log_level_from_env(monkeypatch: pytest.MonkeyPatch):
    """Test that the environment variable sets the level."""
    monkeypatch.setenv("SUPERLOADER_LOG_LEVEL", "debug")

    assert resolve_log_level() == logging.DEBUG


def test_resolve_log_level_explicit():
    """Test that explicit levels win and unknown names are refused."""
    assert resolve_log_level(level=logging.ERROR) == logging.ERROR
    assert resolve_log_level(level="info") == logging.INFO
    with pytest.raises(ValueError):
        resolve_log_level(level="chatty")


def test_setup_logging_sets_package_level():
    """Test that setup_logging configures the package logger."""
    try:
        setup_logging(level="ERROR")

        assert logging.getLogger("superloader").level == logging.ERROR
    finally:
        structlog.reset_defaults()
        logging.getLogger("superloader").setLevel(logging.NOTSET)


def test_logging_context_binds_missing_keys_only():
    """Test that logging_context never overrides bound context."""
    with structlog.contextvars.bound_contextvars(loader="outer"):
        with logging_context(loader="inner", window_id=7):
            context = structlog.contextvars.get_contextvars()
            assert context["loader"] == "outer"
            assert context["window_id"] == 7
        assert "window_id" not in structlog.contextvars.get_contextvars()
