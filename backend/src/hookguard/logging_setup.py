"""Logging configuration for the CLI and API entrypoints."""

import logging

_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def configure_logging(level: str = "info") -> None:
    """Configure root logging once for a process entrypoint."""
    logging.basicConfig(
        level=_LEVELS.get(level.lower(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
