"""Tests for whatgitbranch.logging."""

from __future__ import annotations

import logging
from pathlib import Path

from whatgitbranch.logging import configure_logging, get_logger, parse_level


def test_get_logger_is_namespaced() -> None:
    assert get_logger("locator").name == "whatgitbranch.locator"
    assert get_logger().name == "whatgitbranch"


def test_configure_logging_resets_handlers_and_writes_file(tmp_path: Path) -> None:
    log_file = tmp_path / "wgb.log"
    configure_logging()
    logger = configure_logging(verbose=True, log_file=log_file)

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    get_logger("test").debug("resolved %s", "main")
    for handler in logger.handlers:
        handler.flush()

    assert "whatgitbranch.test: resolved main" in log_file.read_text(encoding="utf-8")

    configure_logging()
    assert len(logger.handlers) == 1


def test_component_level_traces_one_component(tmp_path: Path) -> None:
    log_file = tmp_path / "wgb.log"
    configure_logging(log_file=log_file, levels={"locator": "debug"})

    get_logger("locator").debug("walking %s", "/srv/app")
    get_logger("repository").debug("resolved %s", "main")

    text = log_file.read_text(encoding="utf-8")
    assert "whatgitbranch.locator: walking /srv/app" in text
    assert "resolved main" not in text

    configure_logging()
    assert get_logger("locator").level == logging.NOTSET


def test_unknown_component_level_is_ignored() -> None:
    configure_logging(levels={"locator": "chatty"})

    assert get_logger("locator").level == logging.NOTSET
    configure_logging()


def test_parse_level() -> None:
    assert parse_level(" Warning ") == logging.WARNING
    assert parse_level("chatty") is None
