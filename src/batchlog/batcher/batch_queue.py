"""Pending-event buffer with size and interval flush policy.

Events are appended in order and drained exclusively by this module's flush
routine. A flush happens as soon as the pending count reaches the threshold,
when the interval window elapses with events pending, or when forced by a
shutdown. Every flush starts a fresh interval window.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from ..config.batch_config import BatchConfig
from ..sink import FlushDispatcher


class BatchQueue:
    """Ordered pending buffer that decides when to flush."""

    def __init__(
        self,
        config: BatchConfig,
        dispatcher: FlushDispatcher,
        lock: Optional[threading.RLock] = None,
    ):
        """Initialize the batch queue.

        Args:
            config: Batch policy
            dispatcher: Delivers flushed batches to the sink
            lock: Lock shared with the owning scheduler (a private one if omitted)
        """
        self.config = config
        self.dispatcher = dispatcher

        self._lock = lock or threading.RLock()
        self._pending: List[Any] = []
        self._closed = False
        self._flushing = False

        self._timer: Optional[threading.Timer] = None
        self._timer_started = False
        self._timer_generation = 0

        # Statistics
        self._total_events_appended = 0
        self._total_events_flushed = 0
        self._flushes_by_trigger: Dict[str, int] = {"threshold": 0, "single": 0, "interval": 0, "forced": 0, "shutdown": 0}

    @property
    def timer_armed(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def is_flushing(self) -> bool:
        return self._flushing

    @property
    def closed(self) -> bool:
        return self._closed

    def size(self) -> int:
        """Return the number of pending events."""
        with self._lock:
            return len(self._pending)

    def pending(self) -> tuple:
        """Return a snapshot of the pending events."""
        with self._lock:
            return tuple(self._pending)

    def append(self, event: Any) -> bool:
        """Add an event, flushing immediately if the policy says so.

        Returns:
            True if appended, False if the queue is closed
        """
        with self._lock:
            if self._closed:
                logger.warning("Batch queue is shut down, dropping event")
                return False

            self._pending.append(event)
            self._total_events_appended += 1
            logger.debug(f"Appended event to batch (size: {len(self._pending)})")

            if not self.config.enabled:
                self._flush(is_unloading=False, trigger="single")
            elif len(self._pending) >= self.config.threshold_size:
                self._flush(is_unloading=False, trigger="threshold")

            return True

    def start_timer(self) -> None:
        """Arm the recurring interval window."""
        with self._lock:
            if self._closed or not self.config.enabled:
                return

            if self._timer_started:
                logger.warning("Interval timer is already started")
                return

            self._timer_started = True
            self._arm_timer()
            logger.debug(f"Started interval timer ({self.config.interval}s)")

    def force_flush(self, is_unloading: bool) -> bool:
        """Drain all pending events regardless of count.

        Returns:
            True if a batch was delivered to the sink
        """
        with self._lock:
            return self._flush(is_unloading=is_unloading, trigger="forced")

    def shutdown(self, is_unloading: bool, leftovers: Iterable[Any] = ()) -> bool:
        """Cancel the timer and flush everything that is left.

        Args:
            is_unloading: Flag passed to the sink
            leftovers: Already processed events to add behind the pending ones

        Returns:
            True if a final batch was delivered to the sink
        """
        with self._lock:
            if self._closed:
                return False

            self._closed = True
            self._cancel_timer()

            for event in leftovers:
                self._pending.append(event)
                self._total_events_appended += 1

            return self._flush(is_unloading=is_unloading, trigger="shutdown")

    def get_stats(self) -> Dict[str, Any]:
        """Get queue statistics."""
        with self._lock:
            return {
                "pending_size": len(self._pending),
                "closed": self._closed,
                "timer_armed": self._timer is not None,
                "total_events_appended": self._total_events_appended,
                "total_events_flushed": self._total_events_flushed,
                "flushes_by_trigger": dict(self._flushes_by_trigger),
                "config": {
                    "enabled": self.config.enabled,
                    "threshold_size": self.config.threshold_size,
                    "interval": self.config.interval,
                },
            }

    def _flush(self, is_unloading: bool, trigger: str) -> bool:
        """Drain pending events to the sink. Caller holds the lock."""
        if not self._pending:
            return False

        batch = tuple(self._pending)
        self._pending = []
        self._total_events_flushed += len(batch)
        self._flushes_by_trigger[trigger] += 1

        self._flushing = True
        try:
            delivered = self.dispatcher.dispatch(batch, is_unloading)
        finally:
            self._flushing = False
            # The next window is measured from the end of this flush
            if self._timer_started and not self._closed:
                self._arm_timer()

        logger.info(f"Flushed batch of {len(batch)} events (trigger: {trigger}, unloading: {is_unloading})")
        return delivered

    def _arm_timer(self) -> None:
        self._cancel_timer()
        generation = self._timer_generation
        self._timer = threading.Timer(self.config.interval, self._on_tick, args=(generation,))
        self._timer.daemon = True
        self._timer.name = "batchlog-interval"
        self._timer.start()

    def _cancel_timer(self) -> None:
        # Bumping the generation invalidates a tick already waiting on the lock
        self._timer_generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_tick(self, generation: int) -> None:
        with self._lock:
            if self._closed or generation != self._timer_generation:
                return

            self._timer = None
            if self._pending:
                logger.debug("Interval elapsed with pending events")
                self._flush(is_unloading=False, trigger="interval")
            else:
                self._arm_timer()
