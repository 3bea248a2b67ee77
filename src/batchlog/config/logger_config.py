"""Logger configuration for batchlog."""

from typing import Optional

from loguru import logger

from .settings import BatchlogSettings, get_settings


def setup_logging(settings: Optional[BatchlogSettings] = None) -> None:
    """Configure loguru logger for console and file output.

    Sets up structured logging with:
    - Console output with colored output
    - File output with rotation and retention when a log file is configured
    - Configurable log level from settings
    """
    settings = settings or get_settings()

    # Remove default loguru handler
    logger.remove()

    if settings.log_to_console:
        logger.add(
            sink=lambda msg: print(msg, end=""),
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level=settings.log_level,
            colorize=True,
        )

    if settings.log_to_file:
        logger.add(
            sink=str(settings.log_file_path),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=settings.log_level,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            compression="gz",  # Compress rotated logs
            enqueue=True,  # Thread-safe logging
        )

        logger.info(f"File logging enabled: {settings.log_file_path}")
        logger.info(f"Log level: {settings.log_level}")
