"""Logging setup for clbench.

Every package logger is a child of the ``clbench`` logger. Only that root
logger carries a handler (installed by coloredlogs on first use); children
propagate to it, so one ``set_level`` call retunes the whole package.
"""
from __future__ import annotations

import logging
from typing import Union

import coloredlogs

from .. import config as _cfg

ROOT_LOGGER = "clbench"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_installed = False


def level_from_name(level: Union[str, int, None]) -> int:
    """Map ``"debug"``, ``"WARNING"``, ``10`` ... to a logging level, INFO if unknown."""
    if isinstance(level, int):
        return level
    if not level:
        return logging.INFO
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def _root() -> logging.Logger:
    global _installed
    root = logging.getLogger(ROOT_LOGGER)
    if not _installed:
        coloredlogs.install(level=level_from_name(_cfg.get("CLBENCH_LOG_LEVEL")), logger=root, fmt=LOG_FORMAT)
        root.propagate = False
        _installed = True
    return root


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    root = _root()
    if name == ROOT_LOGGER:
        return root
    if not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def set_level(level: Union[str, int, None]) -> int:
    """Apply `level` to the clbench logger and its handlers; returns the numeric level."""
    root = _root()
    value = level_from_name(level)
    root.setLevel(value)
    for handler in root.handlers:
        handler.setLevel(value)
    return value


__all__ = ["get_logger", "set_level", "level_from_name", "LOG_FORMAT"]
