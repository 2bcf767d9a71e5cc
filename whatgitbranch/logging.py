"""Logging utilities for what-git-branch commands and services."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Mapping, Set

_LOGGER_NAME = "whatgitbranch"

# Component loggers whose level was overridden by the last configure_logging call.
_component_overrides: Set[str] = set()


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the whatgitbranch hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def parse_level(value: str) -> int | None:
    """Map a level name such as ``debug`` or ``WARNING`` to its numeric value."""
    level = getattr(logging, value.strip().upper(), None)
    return level if isinstance(level, int) else None


def configure_logging(
    *,
    verbose: bool = False,
    log_file: Path | None = None,
    levels: Mapping[str, str] | None = None,
) -> logging.Logger:
    """Configure the package logger with console output and optional file sink.

    ``levels`` maps component names (``locator``, ``repository``, ...) to level
    names, so a single component can be traced without raising the level of
    the whole package.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked multiple times.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for component in _component_overrides:
        get_logger(component).setLevel(logging.NOTSET)
    _component_overrides.clear()

    # Handlers pass everything through; logger levels decide what is emitted.
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(
        logging.Formatter("[what-git-branch] %(levelname)s %(message)s")
    )
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    for component, component_level in _component_levels(levels or {}).items():
        get_logger(component).setLevel(component_level)
        _component_overrides.add(component)

    return logger


def _component_levels(levels: Mapping[str, str]) -> Dict[str, int]:
    resolved: Dict[str, int] = {}
    for component, value in levels.items():
        level = parse_level(value)
        if level is None:
            get_logger().warning("Ignoring unknown log level %r for %s", value, component)
            continue
        resolved[component] = level
    return resolved


__all__ = ["configure_logging", "get_logger", "parse_level"]
