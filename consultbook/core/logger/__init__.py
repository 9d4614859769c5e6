"""
Project logger: rotating file (JSON) + console.

Usage:
    from consultbook.core.logger import configure, get_logger, LoggerConfig

    configure(LoggerConfig(level="DEBUG", log_dir="/var/log/consultbook"))
    # or from env: LOG_LEVEL, LOG_DIR, LOG_FILE_BASENAME, ...
    configure()

    logger = get_logger(__name__)
    logger.warning("slot taken", extra={"resource_id": rid, "booking_id": bid})
"""
from consultbook.core.logger.config import LoggerConfig
from consultbook.core.logger.formatters import JsonFormatter, PlainConsoleFormatter
from consultbook.core.logger.setup import (
    build_console_handler,
    build_rotating_file_handler,
    configure,
    get_logger,
)

__all__ = [
    "LoggerConfig",
    "JsonFormatter",
    "PlainConsoleFormatter",
    "configure",
    "get_logger",
    "build_rotating_file_handler",
    "build_console_handler",
]
