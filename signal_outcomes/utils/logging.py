"""Structured logging configuration using loguru."""

import logging
import sys

from loguru import logger


class InterceptHandler(logging.Handler):
    """Redirect stdlib logging to loguru.

    SQLAlchemy, Alembic and APScheduler log through the standard logging
    module; their records are forwarded here so the worker has one output.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back to the frame that issued the stdlib call
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure loguru as the sole logging handler.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, emit one serialized JSON record per line.
    """
    logger.remove()

    if json_output:
        logger.add(sys.stderr, level=log_level.upper(), serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=log_level.upper(),
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level>"
            ),
            colorize=True,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)
    for lib_logger in ("sqlalchemy.engine", "alembic"):
        logging.getLogger(lib_logger).handlers = [InterceptHandler()]
