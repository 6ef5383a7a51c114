from __future__ import annotations

import logging

from pythonjsonlogger import jsonlogger

from resource_kit.logging_config import configure_logging


def test_configure_logging_defaults_to_json(monkeypatch):
    monkeypatch.delenv("RESOURCE_KIT_LOG_FORMAT", raising=False)
    monkeypatch.delenv("RESOURCE_KIT_LOG_LEVEL", raising=False)
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    try:
        configure_logging()

        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, jsonlogger.JsonFormatter)
    finally:
        root.setLevel(saved[0])
        root.handlers[:] = saved[1]


def test_configure_logging_plain_and_level_from_env(monkeypatch):
    monkeypatch.setenv("RESOURCE_KIT_LOG_FORMAT", "plain")
    monkeypatch.setenv("RESOURCE_KIT_LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    try:
        configure_logging()

        assert root.level == logging.DEBUG
        assert not isinstance(root.handlers[0].formatter, jsonlogger.JsonFormatter)
    finally:
        root.setLevel(saved[0])
        root.handlers[:] = saved[1]
