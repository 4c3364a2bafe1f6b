"""Loguru logging setup."""

import os
import sys
from loguru import logger


def setup_logging(level: str | None = None) -> None:
    """Configure the loguru sink and level."""
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO").upper()

    logger.remove()
    logger.add(
        sys.stderr,
        format="<level>{time:YYYY-MM-DD HH:mm:ss} | {name}:{function}:{line} | {message}</level>",
        level=level.upper(),
        colorize=True,
        backtrace=True,
        diagnose=False,
    )


if __name__ == "__main__":
    setup_logging()
