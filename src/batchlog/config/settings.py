"""Settings management for batchlog.

This module provides process-wide defaults for the batch scheduler and the
logging setup, with environment variable overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from loguru import logger

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(value)


@dataclass
class BatchlogSettings:
    """Process-wide batchlog settings."""

    # Batch policy defaults
    batch_enabled: bool = True
    batch_threshold_size: int = 10
    batch_interval_seconds: float = 1.0

    # Worker pool used for asynchronous handlers, init actions and sinks
    worker_threads: int = 4

    # Logging
    log_level: str = "INFO"
    log_to_console: bool = True
    log_file_path: Optional[Path] = None
    log_rotation: str = "10 MB"
    log_retention: str = "7 days"

    def __post_init__(self):
        """Apply environment variable overrides."""
        self._apply_env_overrides()

    @property
    def log_to_file(self) -> bool:
        return self.log_file_path is not None

    def _apply_env_overrides(self):
        """Apply configuration overrides from environment variables."""
        if batch_enabled := os.getenv("BATCHLOG_BATCH_ENABLED"):
            try:
                self.batch_enabled = _parse_bool(batch_enabled)
            except ValueError:
                logger.warning(f"Invalid batch enabled flag: {batch_enabled}")

        if threshold := os.getenv("BATCHLOG_BATCH_THRESHOLD"):
            try:
                self.batch_threshold_size = int(threshold)
            except ValueError:
                logger.warning(f"Invalid batch threshold: {threshold}")

        if interval := os.getenv("BATCHLOG_BATCH_INTERVAL"):
            try:
                self.batch_interval_seconds = float(interval)
            except ValueError:
                logger.warning(f"Invalid batch interval: {interval}")

        if worker_threads := os.getenv("BATCHLOG_WORKER_THREADS"):
            try:
                count = int(worker_threads)
                if count <= 0:
                    raise ValueError(worker_threads)
                self.worker_threads = count
            except ValueError:
                logger.warning(f"Invalid worker thread count: {worker_threads}")

        if log_level := os.getenv("BATCHLOG_LOG_LEVEL"):
            self.log_level = log_level.upper()

        if log_to_console := os.getenv("BATCHLOG_LOG_TO_CONSOLE"):
            try:
                self.log_to_console = _parse_bool(log_to_console)
            except ValueError:
                logger.warning(f"Invalid console logging flag: {log_to_console}")

        if log_file := os.getenv("BATCHLOG_LOG_FILE"):
            self.log_file_path = Path(log_file)

    def validate(self) -> tuple[bool, list[str]]:
        """Validate the settings.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        if self.batch_threshold_size <= 0:
            errors.append("Batch threshold size must be positive")

        if self.batch_interval_seconds <= 0:
            errors.append("Batch interval must be positive")

        if self.worker_threads <= 0:
            errors.append("Worker thread count must be positive")

        if self.log_level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            errors.append(f"Unknown log level: {self.log_level}")

        return len(errors) == 0, errors


class SettingsManager:
    """Holds the process-wide settings instance."""

    def __init__(self):
        self._settings: Optional[BatchlogSettings] = None

    def get_settings(self) -> BatchlogSettings:
        """Get current settings, loading them from the environment on first use."""
        if self._settings is None:
            self._settings = BatchlogSettings()
        return self._settings

    def reset(self) -> None:
        """Forget loaded settings so the next access re-reads the environment."""
        self._settings = None


# Global settings manager instance
_settings_manager = SettingsManager()


def get_settings() -> BatchlogSettings:
    """Get the process-wide settings."""
    return _settings_manager.get_settings()


def reset_settings() -> None:
    """Reset the process-wide settings."""
    _settings_manager.reset()
