"""
Logging Configuration
=====================
Centralized logging setup for instaauth.
Configures console + file handlers with custom formatting.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional


DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEBUG_FORMAT = "%(asctime)s %(name)s %(message)s"
DEBUG_DATE_FORMAT = "%H:%M:%S"

# Root logger name: all child loggers inherit
ROOT_LOGGER = "instaauth"


def mask(value: str, show: int = 4) -> str:
    """Mask sensitive values (passwords, codes, tokens), showing only first N chars."""
    if not value:
        return "<empty>"
    if len(value) <= show:
        return "*" * len(value)
    return value[:show] + "***"


class LogConfig:
    """
    One-call logging setup for all instaauth loggers.

    Usage:
        LogConfig.configure(level="DEBUG", filename="instaauth.log")
        LogConfig.configure(level="WARNING", console=False)
    """

    _configured: bool = False

    @classmethod
    def configure(
        cls,
        level: str = "INFO",
        format: Optional[str] = None,
        date_format: Optional[str] = None,
        filename: Optional[str] = None,
        console: bool = True,
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 3,
    ) -> logging.Logger:
        """
        Configure logging for all instaauth modules.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            format: Custom log format string
            date_format: Custom date format
            filename: Log file path (None = no file logging)
            console: Enable console output
            max_bytes: Max log file size before rotation
            backup_count: Number of backup log files

        Returns:
            Root instaauth logger
        """
        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(getattr(logging, level.upper(), logging.INFO))
        root.handlers.clear()

        formatter = logging.Formatter(
            format or DEFAULT_FORMAT,
            datefmt=date_format or DEFAULT_DATE_FORMAT,
        )

        if console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            root.addHandler(console_handler)

        if filename:
            file_handler = RotatingFileHandler(
                filename,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        # Prevent double output
        root.propagate = False

        cls._configured = True
        return root

    @classmethod
    def configure_debug(cls, filename: Optional[str] = None) -> logging.Logger:
        """Debug mode: compact format with timestamps."""
        return cls.configure(
            level="DEBUG",
            format=DEBUG_FORMAT,
            date_format=DEBUG_DATE_FORMAT,
            filename=filename,
        )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Child logger under the 'instaauth' namespace ('auth' → 'instaauth.auth')."""
        if not name.startswith(ROOT_LOGGER):
            name = f"{ROOT_LOGGER}.{name}"
        return logging.getLogger(name)

    @classmethod
    def set_level(cls, level: str) -> None:
        logging.getLogger(ROOT_LOGGER).setLevel(getattr(logging, level.upper(), logging.INFO))

    @classmethod
    def silence(cls) -> None:
        """Disable all logging output."""
        logging.getLogger(ROOT_LOGGER).setLevel(logging.CRITICAL + 1)

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured
