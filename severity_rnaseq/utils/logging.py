"""
Console logging for analysis scripts.

The library only creates module loggers; scripts call configure_logging once
to see stage summaries.
"""

import logging
import sys
from typing import Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Attach a stderr handler to the severity_rnaseq logger.

    Calling it again only updates the level.

    Args:
        level: Logging level name or number.

    Returns:
        The package logger.
    """
    if isinstance(level, str):
        number = logging.getLevelName(level.upper())
        if not isinstance(number, int):
            raise ValueError(f"Unknown logging level: {level!r}")
        level = number

    package_logger = logging.getLogger('severity_rnaseq')
    package_logger.setLevel(level)

    if not any(getattr(h, '_severity_rnaseq', False) for h in package_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._severity_rnaseq = True
        package_logger.addHandler(handler)

    return package_logger
