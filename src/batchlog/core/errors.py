"""Error types raised by batchlog."""

from __future__ import annotations


class BatchlogError(Exception):
    """Base class for batchlog errors."""


class ConfigurationError(BatchlogError):
    """Settings could not be turned into a usable configuration."""


class SchedulerTerminatedError(BatchlogError):
    def __init__(self, message: str = "scheduler has been shut down"):
        super().__init__(message)


class UnknownEventTypeError(BatchlogError, KeyError):
    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"no handler registered for event type: {event_type}")

    def __str__(self) -> str:
        return self.args[0]
