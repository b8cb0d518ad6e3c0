"""Console logging on loguru.

Every record, including those emitted through stdlib ``logging`` by
uvicorn, httpx and botocore, ends up in one loguru sink.  Records carry a
``session`` extra (``-`` outside a stream) so interleaved stream logs can be
told apart::

    logger.bind(session=session_id).info("Stream started")
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> "
    "<magenta>[{extra[session]}]</magenta> "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> {message}"
)

# Library loggers that are chatty at INFO/DEBUG.
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "botocore": logging.WARNING,
    "boto3": logging.WARNING,
    "urllib3": logging.WARNING,
}


def _caller_depth() -> int:
    frame, depth = logging.currentframe(), 2
    while frame is not None and frame.f_code.co_filename == logging.__file__:
        frame = frame.f_back
        depth += 1
    return depth


class _InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru at the original call-site."""

    def emit(self, record: logging.LogRecord) -> None:
        level: str | int = record.levelno
        if record.levelname in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            level = record.levelname
        logger.opt(depth=_caller_depth(), exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", *, sink=sys.stderr) -> None:
    """Make loguru the only log sink.

    ``serve`` logs to stderr from the app lifespan; ``stream`` and ``files``
    also pass stderr so agent text on stdout stays pipeable.
    """
    level = level.upper()
    logger.configure(
        handlers=[{"sink": sink, "level": level, "format": LOG_FORMAT}],
        extra={"session": "-"},
    )
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    logger.debug("Logging configured (level={})", level)
