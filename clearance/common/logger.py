"""Logging setup for the clearance service.

Every module logs through ``logging.getLogger(__name__)``, so configuring the
``clearance`` package logger routes workflow, store and notification messages
to the console and, optionally, a rotating file with ISO 8601 timestamps.
"""

import logging
import logging.handlers
import os

from clearance.core.config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
ISO_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Per-request and per-statement chatter from libraries
NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def _resolve_level(level: str) -> int:
    name = (level or "").upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LOG_LEVELS)}")
    return getattr(logging, name)


def setup_logger(
    name: str = "clearance",
    log_dir: str = "/var/log/clearance",
    level: str = "INFO",
    file_logging: bool = True,
    console_logging: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Attach console and rotating file handlers to a logger.

    Args:
        name: Logger name; the package name configures every module logger
        log_dir: Directory for ``<name>.log``
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        file_logging: Write to a rotating file in ``log_dir``
        console_logging: Write to stderr
        max_bytes: File size that triggers rotation
        backup_count: Rotated files kept

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    # Configured by an earlier app factory call; only the level changes
    if logger.handlers:
        return logger

    handlers = []
    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
        ))
    if console_logging:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(LOG_FORMAT, datefmt=ISO_DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure the package logger from application settings."""
    return setup_logger(
        "clearance",
        log_dir=settings.log_dir,
        level=settings.log_level,
        file_logging=settings.file_logging,
    )
