"""Logging setup shared by the API server, the CLI, and the pipeline.

All modules log through named loggers obtained from :func:`get_logger`;
the root logger is configured once per process.
"""

import logging
import sys

# Libraries that log every decoded chunk or multipart part at DEBUG.
_NOISY_LOGGERS = ("PIL", "multipart", "python_multipart")

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with a stdout handler.

    Calling it again once a handler is installed is a no-op, so the CLI
    and the API entry point can both call it safely.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module, usually called with ``__name__``."""
    return logging.getLogger(name)
