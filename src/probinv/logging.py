"""Helpers for setting up colored console logging of table construction."""

import logging

import colorlog

DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING
ERROR = logging.ERROR

_FORMAT = "%(log_color)s%(name)s [%(levelname)s] %(message)s"


def setup(level: int = logging.INFO, logger: logging.Logger = None) -> None:
    """Setup a colorful logging output.

    If `logger` is None, sets up only the ``probinv`` logger. Table
    construction reports every committed interval at ``DEBUG`` level and
    degraded accuracy (interval width floor, missing tail cutoff) at
    ``WARNING`` level. Calling this twice on the same logger only updates
    the level.

    Parameters
    ----------
    level
        logging level (see :mod:`logging` module).
    logger
        if not `None`, setup this logger.

    Examples
    --------
    >>> from probinv import logging
    >>> logging.setup(level=logging.DEBUG)
    """
    if logger is None:
        logger = colorlog.getLogger("probinv")

    logger.setLevel(level)
    if any(getattr(h, "_probinv", False) for h in logger.handlers):
        return

    handler = colorlog.StreamHandler()
    handler.setFormatter(colorlog.ColoredFormatter(_FORMAT))
    handler._probinv = True
    logger.addHandler(handler)
