import logging

from rich.logging import RichHandler

import settings


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger that writes through a RichHandler.
    Level is DEBUG when the DEBUG setting is on, INFO otherwise.
    """
    if name is None:
        name = "giftconnect"
    logger = logging.getLogger(name)
    log_level = logging.DEBUG if settings.DEBUG else logging.INFO
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(logging.Formatter("[%(name)s]  %(message)s"))
        handler.setLevel(log_level)
        logger.addHandler(handler)
        logger.propagate = False

    return logger
