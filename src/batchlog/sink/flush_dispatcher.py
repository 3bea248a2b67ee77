"""Delivery of flushed batches to the user-supplied sink.

The sink is called as ``on_flush(events, is_unloading)``. Delivery is
fire-and-forget: asynchronous sink results are handed to the worker pool and
never awaited, and failures are logged and counted but never retried or
re-raised to the code that reported the events.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future
from typing import Any, Dict, Optional

from loguru import logger

from ..config.batch_config import FlushSink
from ..core.async_results import as_future


class FlushDispatcher:
    """Calls the flush sink and keeps delivery statistics."""

    def __init__(self, sink: Optional[FlushSink], executor: Executor):
        """Initialize the dispatcher.

        Args:
            sink: User sink, or None when handlers deliver events themselves
            executor: Worker pool that runs asynchronous sink results
        """
        self.sink = sink
        self.executor = executor
        self._stats_lock = threading.RLock()

        # Statistics
        self._total_batches_delivered = 0
        self._total_events_delivered = 0
        self._total_batches_failed = 0
        self._total_batches_discarded = 0

    def dispatch(self, events: tuple, is_unloading: bool) -> bool:
        """Deliver a batch to the sink.

        Args:
            events: Immutable snapshot of the flushed events
            is_unloading: True for shutdown flushes

        Returns:
            True if the sink was called without raising, False otherwise
        """
        if not events:
            return False

        if self.sink is None:
            logger.debug(f"No flush sink configured, discarding batch of {len(events)} events")
            with self._stats_lock:
                self._total_batches_discarded += 1
            return False

        try:
            result = self.sink(events, is_unloading)
        except Exception:
            logger.exception(f"Flush sink failed for batch of {len(events)} events (unloading={is_unloading})")
            with self._stats_lock:
                self._total_batches_failed += 1
            return False

        with self._stats_lock:
            self._total_batches_delivered += 1
            self._total_events_delivered += len(events)

        try:
            pending = as_future(result, self.executor)
        except RuntimeError as e:
            # Worker pool already shut down
            logger.error(f"Cannot run asynchronous flush sink result: {e}")
            _close_awaitable(result)
            return True

        if pending is not None:
            pending.add_done_callback(self._on_async_sink_done)

        logger.debug(f"Delivered batch of {len(events)} events (unloading={is_unloading})")
        return True

    def get_stats(self) -> Dict[str, Any]:
        """Get delivery statistics."""
        with self._stats_lock:
            return {
                "sink_configured": self.sink is not None,
                "total_batches_delivered": self._total_batches_delivered,
                "total_events_delivered": self._total_events_delivered,
                "total_batches_failed": self._total_batches_failed,
                "total_batches_discarded": self._total_batches_discarded,
            }

    def _on_async_sink_done(self, future: Future) -> None:
        if future.cancelled():
            return

        error = future.exception()
        if error is not None:
            logger.opt(exception=error).error("Asynchronous flush sink failed")
            with self._stats_lock:
                self._total_batches_failed += 1


def _close_awaitable(result: Any) -> None:
    close = getattr(result, "close", None)
    if callable(close):
        close()
