"""loguru sink setup shared by the CLI entry points."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", log_file: Optional[Union[str, Path]] = None) -> None:
    """Replace loguru's default sink with a stderr sink and an optional daily file."""
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level.upper())
    if log_file:
        Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            rotation="1 day",
            retention="30 days",
            level="DEBUG",
        )
