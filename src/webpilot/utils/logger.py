"""Logging for WebPilot: loguru sinks plus a rich console for step output."""

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console

# Step-by-step output for the person watching the agent
console = Console()

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logger(log_level: str = "INFO", log_dir: Optional[str] = "logs", log_file: str = "webpilot.log"):
    """
    Configure loguru with a colored stderr sink and, when log_dir is set, a rotating file.

    Args:
        log_level: Minimum level for both sinks
        log_dir: Directory for the log file; empty or None disables the file sink
        log_file: File name inside log_dir
    """
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=log_level, colorize=True)

    if log_dir:
        log_path = Path(log_dir) / log_file
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=log_level,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            encoding="utf-8",
        )

    return logger


def shorten(value, limit: int = 60) -> str:
    """Cut a value to `limit` chars for one-line log output."""
    text = value if isinstance(value, str) else str(value)
    return text[:limit] + "..." if len(text) > limit else text


log = setup_logger(
    os.getenv("LOG_LEVEL", "INFO"),
    log_dir=os.getenv("WEBPILOT_LOG_DIR", "logs"),
)
