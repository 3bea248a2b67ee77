"""Core batchlog types."""

from .async_results import as_future
from .errors import BatchlogError, ConfigurationError, SchedulerTerminatedError, UnknownEventTypeError
from .events import EventType, SchedulerState

__all__ = [
    # Errors
    "BatchlogError",
    "ConfigurationError",
    "SchedulerTerminatedError",
    "UnknownEventTypeError",
    # Enums
    "EventType",
    "SchedulerState",
    # Async helpers
    "as_future",
]
