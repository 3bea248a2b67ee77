"""Tests for settings, environment overrides and batch configuration."""

import sys
import tempfile
from pathlib import Path

import pytest
from loguru import logger
from pydantic import ValidationError

from batchlog.config import BatchConfig, BatchlogSettings, get_settings, reset_settings
from batchlog.config.logger_config import setup_logging
from batchlog.core import ConfigurationError


def sink(events, is_unloading):
    return None


def test_defaults():
    settings = BatchlogSettings()

    assert settings.batch_enabled is True
    assert settings.batch_threshold_size == 10
    assert settings.batch_interval_seconds == 1.0
    assert not settings.log_to_file

    is_valid, errors = settings.validate()
    assert is_valid, errors


def test_env_overrides(monkeypatch):
    logger.info("Testing environment overrides...")
    monkeypatch.setenv("BATCHLOG_BATCH_ENABLED", "false")
    monkeypatch.setenv("BATCHLOG_BATCH_THRESHOLD", "25")
    monkeypatch.setenv("BATCHLOG_BATCH_INTERVAL", "2.5")
    monkeypatch.setenv("BATCHLOG_WORKER_THREADS", "8")
    monkeypatch.setenv("BATCHLOG_LOG_LEVEL", "debug")

    settings = BatchlogSettings()

    assert settings.batch_enabled is False
    assert settings.batch_threshold_size == 25
    assert settings.batch_interval_seconds == 2.5
    assert settings.worker_threads == 8
    assert settings.log_level == "DEBUG"


def test_invalid_env_values_keep_defaults(monkeypatch):
    monkeypatch.setenv("BATCHLOG_BATCH_THRESHOLD", "many")
    monkeypatch.setenv("BATCHLOG_BATCH_ENABLED", "maybe")

    settings = BatchlogSettings()

    assert settings.batch_threshold_size == 10
    assert settings.batch_enabled is True


def test_validate_reports_errors():
    settings = BatchlogSettings(batch_threshold_size=0, batch_interval_seconds=-1, log_level="LOUD")

    is_valid, errors = settings.validate()

    assert not is_valid
    assert "Batch threshold size must be positive" in errors
    assert "Batch interval must be positive" in errors
    assert "Unknown log level: LOUD" in errors


def test_settings_manager_reloads_after_reset(monkeypatch):
    reset_settings()
    try:
        first = get_settings()
        assert get_settings() is first

        monkeypatch.setenv("BATCHLOG_BATCH_THRESHOLD", "3")
        reset_settings()
        assert get_settings().batch_threshold_size == 3
    finally:
        monkeypatch.delenv("BATCHLOG_BATCH_THRESHOLD", raising=False)
        reset_settings()


def test_batch_config_from_settings():
    settings = BatchlogSettings(batch_threshold_size=7, batch_interval_seconds=0.25)

    config = BatchConfig.from_settings(settings, on_flush=sink)

    assert config.enabled is True
    assert config.threshold_size == 7
    assert config.interval == 0.25
    assert config.on_flush is sink


def test_batch_config_from_invalid_settings():
    with pytest.raises(ConfigurationError):
        BatchConfig.from_settings(BatchlogSettings(batch_threshold_size=-1), on_flush=sink)


def test_batch_config_validation():
    logger.info("Testing batch config validation...")
    with pytest.raises(ValidationError):
        BatchConfig(threshold_size=0, on_flush=sink)

    with pytest.raises(ValidationError):
        BatchConfig(interval=0, on_flush=sink)

    with pytest.raises(ValidationError):
        BatchConfig(enabled=True)

    with pytest.raises(ValidationError):
        BatchConfig(on_flush=sink, flush_every=3)


def test_batch_config_alias_and_immutability():
    config = BatchConfig.model_validate({"enable": False})
    assert config.enabled is False
    assert config.on_flush is None

    with pytest.raises(ValidationError):
        config.threshold_size = 3


def test_setup_logging_with_file_sink():
    with tempfile.TemporaryDirectory() as temp_dir:
        log_path = Path(temp_dir) / "batchlog.log"
        settings = BatchlogSettings(log_to_console=False, log_file_path=log_path, log_level="DEBUG")

        setup_logging(settings)
        try:
            logger.info("file sink check")
            logger.complete()
            assert log_path.exists()
        finally:
            logger.remove()
            logger.add(sys.stderr)
