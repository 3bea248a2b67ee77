"""Event batching module."""

from .batch_queue import BatchQueue
from .scheduler import LogScheduler

__all__ = ["BatchQueue", "LogScheduler"]
