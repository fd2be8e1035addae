"""Logging configuration for the application."""

import logging
import sys

from digestai.core.config import settings


def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""

    logger = logging.getLogger("digestai")
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    if settings.DEBUG:
        formatter = logging.Formatter(
            "\n%(levelname)s [%(asctime)s] %(name)s\n"
            "└── %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
    else:
        formatter = logging.Formatter("%(levelname)s: %(message)s")

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Third-party HTTP clients log every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger


# Application logger instance
logger = setup_logging()
