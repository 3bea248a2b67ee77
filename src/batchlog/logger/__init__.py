"""Event reporting module."""

from .event_logger import EventHandler, EventLogger, LoggingContext, create_logger

__all__ = ["EventLogger", "LoggingContext", "EventHandler", "create_logger"]
