"""Loguru sink setup for the CLI and applications embedding agentrelay."""

import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", file: Optional[str] = None) -> None:
    """Replace loguru's default sink with a stderr sink at ``level``.

    When ``file`` is given, a rotating DEBUG-level file sink is added too.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)
    if file:
        logger.add(file, level="DEBUG", rotation="10 MB", retention=5, enqueue=True)
