"""
Logger utility for modem-bringup
"""

import logging
import sys


def get_logger(name: str = None, fmt: str = None, level: int = logging.INFO, stream=None) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name:  Logger name (defaults to 'modem_bringup', the package root, so
               every module logger created with ``logging.getLogger(__name__)``
               propagates into the same handler).
        fmt:   Log format string.  Defaults to the standard timestamped format.
               Pass ``"%(message)s"`` to emit the bare message (useful when
               the surrounding log infrastructure, e.g. journald, already
               adds timestamp and source information).
        level: Level applied when the handler is first installed.
        stream: Handler stream, stdout by default.
    """
    logger = logging.getLogger(name or "modem_bringup")

    if not logger.handlers:
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                fmt or "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
        logger.setLevel(level)

    return logger


def set_verbose(verbose: bool) -> None:
    """Switch the package logger between INFO and DEBUG."""
    get_logger().setLevel(logging.DEBUG if verbose else logging.INFO)
