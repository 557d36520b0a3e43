"""Logging setup for SOP Gate processes.

The API and the Celery worker call :func:`configure_logging` once at start-up.
Library modules only ever do ``logging.getLogger(__name__)``.
"""

import logging
import logging.handlers
import os
from typing import Optional


DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def configure_logging(
    name: str = "sopgate",
    level: str = "INFO",
    log_dir: Optional[str] = None,
    file_logging: bool = False,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """Attach console (and optionally rotating file) handlers to a logger.

    Args:
        name: Logger to configure; child module loggers propagate to it
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the log file when file logging is enabled
        file_logging: Enable the rotating file handler
        max_bytes: Maximum log file size before rotation
        backup_count: Number of backup log files to keep

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)

    level_upper = level.upper()
    if not hasattr(logging, level_upper):
        raise ValueError(
            f"Invalid log level: {level}. "
            f"Must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
        )
    logger.setLevel(getattr(logging, level_upper))

    # Prevent duplicate handlers when called twice (reloads, worker forks)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if file_logging:
        log_dir = log_dir or "./logs"
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def configure_from_settings(settings) -> logging.Logger:
    """Configure the package logger from a :class:`Settings` instance."""
    return configure_logging(
        level=settings.log_level,
        log_dir=settings.log_dir,
        file_logging=settings.log_to_file,
    )
