"""batchlog - event instrumentation with batched, gated flushing."""

from .batcher import BatchQueue, LogScheduler
from .config import BatchConfig, get_settings
from .core import EventType, SchedulerState, SchedulerTerminatedError, UnknownEventTypeError
from .lifecycle import LifecycleHub, ProcessLifecycle
from .logger import EventLogger, LoggingContext, create_logger

__version__ = "0.1.0"

__all__ = [
    "create_logger",
    "EventLogger",
    "LoggingContext",
    "LogScheduler",
    "BatchQueue",
    "BatchConfig",
    "EventType",
    "SchedulerState",
    "SchedulerTerminatedError",
    "UnknownEventTypeError",
    "LifecycleHub",
    "ProcessLifecycle",
    "get_settings",
]
