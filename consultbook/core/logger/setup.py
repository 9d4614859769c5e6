"""
Attach consultbook's handlers: plain console lines and a rotating JSON Lines file.
"""
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from consultbook.core.logger.config import LoggerConfig
from consultbook.core.logger.formatters import JsonFormatter, PlainConsoleFormatter

_active: Optional[LoggerConfig] = None


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _handlers(config: LoggerConfig) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if config.console:
        handlers.append(build_console_handler(config.level))
    if config.file_rotating and (config.log_dir or "").strip():
        try:
            handlers.append(
                build_rotating_file_handler(
                    config.log_dir,
                    basename=config.log_file_basename,
                    max_bytes=config.max_bytes,
                    backup_count=config.backup_count,
                    level=config.level,
                )
            )
        except OSError as exc:
            logging.getLogger(config.root_name).warning(
                "Log dir %s unusable (%s); logging to console only", config.log_dir, exc
            )
    return handlers


def configure(config: Optional[LoggerConfig] = None) -> None:
    """
    (Re)configure the "consultbook" logger tree. Safe to call again: existing
    handlers are replaced, not stacked. Without a config, LOG_* env is read.
    """
    global _active
    _active = config or LoggerConfig.from_env()

    root = logging.getLogger(_active.root_name or "consultbook")
    root.setLevel(_level(_active.level))
    root.handlers.clear()
    for handler in _handlers(_active):
        root.addHandler(handler)
    root.propagate = False


def get_logger(name: str, config: Optional[LoggerConfig] = None) -> logging.Logger:
    """Logger for ``name``; the first call configures the tree if nobody has yet."""
    if _active is None:
        configure(config)
    return logging.getLogger(name)


def build_rotating_file_handler(
    log_dir: str,
    basename: str = "consultbook",
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
    level: str = "INFO",
) -> RotatingFileHandler:
    os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(log_dir, f"{basename}.log"),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(_level(level))
    handler.setFormatter(JsonFormatter())
    return handler


def build_console_handler(level: str = "INFO", fmt: Optional[str] = None) -> logging.StreamHandler:
    handler = logging.StreamHandler()
    handler.setLevel(_level(level))
    handler.setFormatter(PlainConsoleFormatter(fmt=fmt))
    return handler
