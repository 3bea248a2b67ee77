"""Configuration module for batchlog."""

from .batch_config import BatchConfig, FlushSink
from .settings import BatchlogSettings, SettingsManager, get_settings, reset_settings

__all__ = ["BatchConfig", "FlushSink", "BatchlogSettings", "SettingsManager", "get_settings", "reset_settings"]
