"""
Logging setup for scripts and interactive use.

Library modules only create loggers (`logging.getLogger(__name__)`); they
never configure handlers. Entry points call `configure_logging` once.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """
    Install a single stream handler on the "flatfile" logger.

    Calling this again replaces the handler instead of adding a second one.

    Args:
        level: Level name ("DEBUG", "INFO", ...) or numeric level.

    Returns:
        The configured "flatfile" logger.

    Raises:
        ValueError: If `level` is not a known level name.
    """
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level}")
        level = numeric

    logger = logging.getLogger("flatfile")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
