"""Tests for the console logging setup."""

from __future__ import annotations

import logging

import pytest

from trust_scoring.utils.logging import LOG_FORMAT, configure_console_only_logging


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_replaces_existing_handlers(restore_root_logger) -> None:
    root = restore_root_logger
    root.addHandler(logging.NullHandler())

    configure_console_only_logging(logging.DEBUG)
    configured = configure_console_only_logging(logging.WARNING)

    assert configured is root
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], logging.StreamHandler)
    assert root.handlers[0].formatter._fmt == LOG_FORMAT
    assert root.level == logging.WARNING
