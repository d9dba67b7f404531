"""
loguru sink configuration.

All modules log through ``from loguru import logger``; this module only
decides where those records go. Called once by the CLI at startup.
"""

import sys
from pathlib import Path

from loguru import logger

from .config import LoggingSettings
from .exceptions import ConfigError

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logging(settings: LoggingSettings) -> None:
    """
    Replace loguru's default sink with console and optional file sinks.

    Args:
        settings (LoggingSettings): Level, file path and rotation policy.
            When settings.file is None only the console sink is added.

    Raises:
        ConfigError: If loguru rejects the rotation or retention value

    Examples:
        >>> setup_logging(LoggingSettings(level="DEBUG", file=None))
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.level, format=_CONSOLE_FORMAT)

    if settings.file:
        log_path = Path(settings.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            logger.add(
                log_path,
                level=settings.level,
                rotation=settings.rotation,
                retention=settings.retention,
                enqueue=True,
            )
        except (ValueError, TypeError) as e:
            raise ConfigError(f"Invalid logging configuration: {e}") from e

    logger.debug(f"Logging configured at {settings.level} level")
