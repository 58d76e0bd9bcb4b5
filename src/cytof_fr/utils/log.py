"""
Logging setup for the cytof_fr namespace.
"""

import logging
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = 'cytof_fr'
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s - %(message)s'


def setup_logger(level: str = 'INFO', log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Configure the package logger with a console handler and an optional file handler.

    Calling it again replaces the handlers, so the level can be changed between runs.

    Args:
        level: Level name ('DEBUG', 'INFO', ...)
        log_file: Optional path of a log file

    Returns:
        The 'cytof_fr' logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
