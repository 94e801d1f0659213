"""Logging configuration using Loguru.

Console output in development, rotating files in production.
Phone numbers must go through mask_phone() before they are logged.
"""

import sys
from pathlib import Path
from typing import Any

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{extra[name]}:{function}:{line} | "
    "{message}"
)


def setup_logging(
    level: str = "INFO",
    log_dir: str = "logs",
    enable_file: bool = True,
) -> None:
    """Configure application logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files
        enable_file: Whether to enable file logging
    """
    logger.remove()
    # Records logged without bind() still need extra[name]
    logger.configure(extra={"name": "swizz"})

    logger.add(
        sys.stderr,
        format=_CONSOLE_FORMAT,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=level == "DEBUG",
    )

    if enable_file:
        log_path = Path(log_dir)
        log_path.mkdir(exist_ok=True)

        logger.add(
            log_path / "swizz_{time:YYYY-MM-DD}.log",
            format=_FILE_FORMAT,
            level=level,
            rotation="100 MB",
            retention="30 days",
            compression="gz",
            backtrace=True,
            diagnose=False,
        )

        # Error-only log for quick debugging
        logger.add(
            log_path / "errors_{time:YYYY-MM-DD}.log",
            format=_FILE_FORMAT + "\n{exception}",
            level="ERROR",
            rotation="50 MB",
            retention="90 days",
            compression="gz",
            backtrace=True,
            diagnose=False,
        )

    logger.bind(name=__name__).info(f"Logging initialized at {level} level")


def get_logger(name: str) -> Any:
    """Get a logger instance bound to the given module name.

    Usage:
        from swizz.logging_config import get_logger
        logger = get_logger(__name__)
        logger.info("Message")
    """
    return logger.bind(name=name)


def mask_phone(phone: str | None) -> str:
    """Mask phone number for logging: +15551234567 -> +1XXXX4567."""
    if not phone or len(phone) < 6:
        return "XXXX"
    return f"{phone[:2]}XXXX{phone[-4:]}"
