"""
Logging utilities for the FastAPI application and background pipeline runs.

Provides a consistent logging format and configuration.
"""

import logging
import sys

_NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "google.auth")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging and quiet chatty third-party transports."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.root.level))


__all__ = ["configure_logging"]
