"""Logging setup shared by the preprocessing, OCR and extraction modules."""

import logging
import sys
from typing import TextIO

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that flood DEBUG output with per-call chatter.
_NOISY_LOGGERS = ("PIL", "urllib3", "filelock", "transformers")


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure the root logger once.

    Repeated calls are no-ops so the CLI, the API server and tests can all
    call it without stacking handlers.

    Args:
        level: Logging level name. Unknown names fall back to INFO.
        stream: Output stream, stdout when omitted.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    if root.handlers:
        return

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance.

    Args:
        name: Logger name, typically ``__name__`` of the calling module.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
