"""
Logging setup for fission (loguru).

Library modules log through `from loguru import logger` and never configure sinks;
entry points (the CLI) call `setup_logging` once.
"""

from __future__ import annotations

import os
import sys

from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "INFO", log_file: str | os.PathLike[str] | None = None) -> None:
    """
    Replace loguru's default sink with a stderr sink at level, plus an optional file sink.

    The file sink rotates daily and keeps a week of logs.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_FORMAT)
    if log_file is not None:
        logger.add(
            str(log_file),
            rotation="1 day",
            retention="7 days",
            level=level.upper(),
            encoding="utf-8",
        )
