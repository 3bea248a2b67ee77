"""Public reporting surface.

``create_logger`` registers one processing function per event type and the
batch policy. Each ``EventLogger.provide()`` call opens a logging context with
its own scheduler, queue and timer.

A processing function is called as ``handler(params, context, set_context)``
and returns the event to batch (or a coroutine / future resolving to it).
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Mapping, Optional, Union

from loguru import logger

from ..batcher import LogScheduler
from ..config import BatchConfig
from ..core.errors import UnknownEventTypeError
from ..core.events import EventType, SchedulerState
from ..gate import InitAction
from ..lifecycle import LifecycleSignals

ContextUpdate = Union[Mapping[str, Any], Callable[[Dict[str, Any]], Mapping[str, Any]]]
SetContext = Callable[[ContextUpdate], None]
EventHandler = Callable[[Any, Dict[str, Any], SetContext], Any]


class LoggingContext:
    """A provisioned logging context bound to one scheduler."""

    def __init__(
        self,
        handlers: Mapping[str, EventHandler],
        scheduler: LogScheduler,
        initial_context: Optional[Mapping[str, Any]] = None,
    ):
        self._handlers = dict(handlers)
        self.scheduler = scheduler
        self._context: Dict[str, Any] = dict(initial_context or {})
        self._context_lock = threading.Lock()

    @property
    def context(self) -> Dict[str, Any]:
        """A copy of the current context."""
        with self._context_lock:
            return dict(self._context)

    @property
    def state(self) -> SchedulerState:
        return self.scheduler.state

    def set_context(self, update: ContextUpdate) -> None:
        """Replace the context, either with a mapping or with ``update(previous)``."""
        with self._context_lock:
            new_context = update(dict(self._context)) if callable(update) else update
            self._context = dict(new_context)

    def report(self, event_type: Union[str, EventType], params: Any = None) -> Future:
        """Run the handler registered for ``event_type`` and batch its result.

        Raises:
            UnknownEventTypeError: If no handler is registered for the type
        """
        key = event_type.value if isinstance(event_type, EventType) else event_type
        handler = self._handlers.get(key)
        if handler is None:
            raise UnknownEventTypeError(key)

        context = self.context
        logger.debug(f"Reporting {key} event")
        return self.scheduler.submit(lambda: handler(params, context, self.set_context))

    def click(self, params: Any = None) -> Future:
        return self.report(EventType.CLICK, params)

    def page_view(self, params: Any = None) -> Future:
        return self.report(EventType.PAGE_VIEW, params)

    def unmount(self) -> bool:
        return self.scheduler.unmount()

    def page_closing(self) -> bool:
        return self.scheduler.page_closing()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self.scheduler.wait_until_ready(timeout)

    def get_stats(self) -> Dict[str, Any]:
        return self.scheduler.get_stats()

    def __enter__(self) -> "LoggingContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()


class EventLogger:
    """Factory for logging contexts sharing one handler set and batch policy."""

    def __init__(
        self,
        handlers: Mapping[str, EventHandler],
        batch: BatchConfig,
        init: Optional[InitAction] = None,
        max_workers: Optional[int] = None,
    ):
        self.handlers = dict(handlers)
        self.batch = batch
        self.init = init
        self.max_workers = max_workers

    def provide(
        self,
        initial_context: Optional[Mapping[str, Any]] = None,
        lifecycle: Optional[LifecycleSignals] = None,
    ) -> LoggingContext:
        """Open a logging context and run the init action for it."""
        scheduler = LogScheduler(self.batch, init=self.init, lifecycle=lifecycle, max_workers=self.max_workers)
        context = LoggingContext(self.handlers, scheduler, initial_context)
        scheduler.start()
        logger.debug(f"Provided logging context with event types: {sorted(self.handlers)}")
        return context


def create_logger(
    init: Optional[InitAction] = None,
    handlers: Optional[Mapping[str, EventHandler]] = None,
    click: Optional[EventHandler] = None,
    page_view: Optional[EventHandler] = None,
    batch: Union[BatchConfig, Mapping[str, Any], None] = None,
    max_workers: Optional[int] = None,
) -> EventLogger:
    """Create an event logger.

    Args:
        init: Optional init action run once per provided context
        handlers: Processing functions keyed by event type name
        click: Processing function for click events
        page_view: Processing function for page-view events
        batch: Batch policy; batching is disabled when omitted
        max_workers: Worker threads per context for asynchronous results

    Returns:
        Configured event logger
    """
    registered: Dict[str, EventHandler] = dict(handlers or {})
    if click is not None:
        registered[EventType.CLICK.value] = click
    if page_view is not None:
        registered[EventType.PAGE_VIEW.value] = page_view

    if batch is None:
        batch_config = BatchConfig(enabled=False)
    elif isinstance(batch, BatchConfig):
        batch_config = batch
    else:
        batch_config = BatchConfig.model_validate(dict(batch))

    return EventLogger(registered, batch_config, init=init, max_workers=max_workers)
