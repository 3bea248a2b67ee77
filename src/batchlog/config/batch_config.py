"""Pydantic model for the batch flush policy."""

from __future__ import annotations

from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.errors import ConfigurationError
from .settings import BatchlogSettings

FlushSink = Callable[[tuple, bool], Any]


class BatchConfig(BaseModel):
    """Batch policy for one scheduler. Immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True, arbitrary_types_allowed=True)

    enabled: bool = Field(default=True, alias="enable", description="Batch events before flushing")
    threshold_size: int = Field(default=10, gt=0, description="Pending count that triggers an immediate flush")
    interval: float = Field(default=1.0, gt=0, description="Maximum seconds between flushes")
    on_flush: Optional[FlushSink] = Field(default=None, description="Sink called with (events, is_unloading)")

    @model_validator(mode="after")
    def require_sink_when_enabled(self) -> "BatchConfig":
        if self.enabled and self.on_flush is None:
            raise ValueError("on_flush is required when batching is enabled")
        return self

    @classmethod
    def from_settings(cls, settings: BatchlogSettings, on_flush: Optional[FlushSink] = None) -> "BatchConfig":
        """Build a batch policy from process-wide settings.

        Raises:
            ConfigurationError: If the settings do not validate.
        """
        is_valid, errors = settings.validate()
        if not is_valid:
            raise ConfigurationError("; ".join(errors))

        return cls(
            enabled=settings.batch_enabled,
            threshold_size=settings.batch_threshold_size,
            interval=settings.batch_interval_seconds,
            on_flush=on_flush,
        )
