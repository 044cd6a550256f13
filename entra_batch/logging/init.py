from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Console logging for provisioning runs.

Every line is "<LABEL> <message>":
- INFO    per action (created / invited / added to group)
- WARN    per skipped row (blank required field, duplicate, already exists)
- ERROR   per failed remote call
- SUMMARY final status-count line

Modules log through logging.getLogger(__name__); everything under the
"entra_batch" namespace reaches the one console handler installed here.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "set_debug",
    "reset_logging",
]

LOGGER_NAME = "entra_batch"

# INFO(20) と WARNING(30) の間
SUMMARY_LEVEL = 25

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Prefix each message with a short level label."""

    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        return f"{label} {record.getMessage()}"


def _console_handler(stream: TextIO) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(logging.INFO)
    handler.setFormatter(LabeledFormatter())
    return handler


def setup_logging(stream: TextIO | None = None) -> logging.Logger:
    """Install the console handler on the "entra_batch" logger once.

    Later calls return the same logger untouched until reset_logging().
    The stream defaults to the sys.stdout current at call time.
    """
    global _logger

    if _logger is None:
        logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
        logger = logging.getLogger(LOGGER_NAME)
        logger.setLevel(logging.INFO)
        for old in list(logger.handlers):
            logger.removeHandler(old)
        logger.addHandler(_console_handler(stream or sys.stdout))
        # root には流さない (二重出力防止)
        logger.propagate = False
        _logger = logger
    return _logger


def get_logger() -> logging.Logger:
    return _logger or setup_logging()


def set_debug(logger: logging.Logger) -> None:
    logger.setLevel(logging.DEBUG)
    for h in logger.handlers:
        h.setLevel(logging.DEBUG)


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured logger so the next setup_logging() rebinds the stream (tests)."""
    global _logger
    _logger = None
