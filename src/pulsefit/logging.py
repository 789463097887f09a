"""Helpers for setting up the colored console logging of the ``pulsefit``
command line tools."""

import logging

import colorlog

DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING
ERROR = logging.ERROR
FATAL = logging.FATAL
CRITICAL = logging.CRITICAL

FORMAT = "%(log_color)s%(name)s [%(levelname)s] %(message)s"


class _ConsoleHandler(colorlog.StreamHandler):
    """Stream handler installed by :func:`setup`, replaced on every call."""


def setup(level: int = logging.INFO, logger: logging.Logger = None) -> None:
    """Set up colored logging output on `logger`.

    Calling this again replaces the handler installed by the previous call,
    so messages are never printed twice.

    Parameters
    ----------
    level
        logging level (see :mod:`logging` module).
    logger
        the logger to set up. Defaults to the ``pulsefit`` logger.

    Examples
    --------
    >>> from pulsefit import logging
    >>> logging.setup(level=logging.DEBUG)
    """
    if logger is None:
        logger = colorlog.getLogger("pulsefit")

    for old in [h for h in logger.handlers if isinstance(h, _ConsoleHandler)]:
        logger.removeHandler(old)

    handler = _ConsoleHandler()
    handler.setFormatter(colorlog.ColoredFormatter(FORMAT))
    logger.setLevel(level)
    logger.addHandler(handler)
