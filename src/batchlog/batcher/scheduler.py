"""Batch scheduler for one logging context.

This module coordinates the event flow of a logging context:
report -> init gate -> ordered processing -> batch queue -> flush sink

It owns the pending queue, the interval timer, the init gate and the worker
pool, and ties their lifetime to the context's lifecycle signals.
"""

from __future__ import annotations

import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Any, Callable, Deque, Dict, List, Optional

from loguru import logger

from ..config import BatchConfig, get_settings
from ..core.async_results import as_future
from ..core.errors import ConfigurationError, SchedulerTerminatedError
from ..core.events import SchedulerState
from ..gate import InitAction, InitGate
from ..lifecycle import LifecycleSignals, Unsubscribe
from ..sink import FlushDispatcher
from .batch_queue import BatchQueue

ProcessFn = Callable[[], Any]


def _resolve_worker_count(max_workers: Optional[int]) -> int:
    """Return the worker pool size, falling back to settings when not given.

    Raises:
        ConfigurationError: If the resulting count is not positive
    """
    if max_workers is None:
        max_workers = get_settings().worker_threads

    if max_workers <= 0:
        raise ConfigurationError(f"Worker thread count must be positive, got {max_workers}")

    return max_workers


@dataclass
class _Slot:
    """One reported event on its way to the queue."""

    process: ProcessFn
    future: Future = field(default_factory=Future)
    done: bool = False
    value: Any = None


class LogScheduler:
    """Accumulates reported events and flushes them in batches."""

    def __init__(
        self,
        config: BatchConfig,
        init: Optional[InitAction] = None,
        lifecycle: Optional[LifecycleSignals] = None,
        max_workers: Optional[int] = None,
    ):
        """Initialize the scheduler.

        Args:
            config: Batch policy and flush sink
            init: Optional init action; events wait until it settles
            lifecycle: Signal source for unmount and page closing
            max_workers: Worker threads for asynchronous results
        """
        self.config = config
        self.lifecycle = lifecycle

        # One lock for the whole scheduler, shared with the queue
        self._lock = threading.RLock()
        self._executor = ThreadPoolExecutor(
            max_workers=_resolve_worker_count(max_workers),
            thread_name_prefix="batchlog",
        )

        self.dispatcher = FlushDispatcher(config.on_flush, self._executor)
        self.queue = BatchQueue(config, self.dispatcher, lock=self._lock)
        self.gate = InitGate(init, self._executor)

        self._state = SchedulerState.GATED
        self._started = False
        self._deferred: Deque[_Slot] = deque()
        self._slots: Deque[_Slot] = deque()

        self._unsubscribers: List[Unsubscribe] = []
        if lifecycle is not None:
            self._unsubscribers.append(lifecycle.on_unmount(self.unmount))
            self._unsubscribers.append(lifecycle.on_page_closing(self.page_closing))

        # Statistics
        self._created_at = datetime.now()
        self._total_submitted = 0
        self._total_failed = 0
        self._dropped_on_shutdown = 0

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            if self._state is SchedulerState.IDLE and self.queue.is_flushing:
                return SchedulerState.FLUSHING
            return self._state

    @property
    def init_error(self) -> Optional[BaseException]:
        return self.gate.error

    def start(self) -> None:
        """Run the init action. Events reported before it settles are deferred."""
        with self._lock:
            if self._started:
                logger.warning("Scheduler is already started")
                return
            self._started = True

        self.gate.start(self._on_init_settled)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the init gate has settled and deferred events were processed."""
        return self.gate.wait(timeout)

    def submit(self, process: ProcessFn) -> Future:
        """Schedule one event for processing and batching.

        ``process`` is called with no arguments once the init gate is open and
        returns the event, or a coroutine / future resolving to it. Events are
        appended in the order ``submit`` was called.

        Returns:
            Future resolving to the appended event

        Raises:
            Exception: Whatever ``process`` raises when it runs synchronously
        """
        with self._lock:
            if self._state is SchedulerState.TERMINATED:
                logger.warning("Scheduler is shut down, rejecting event")
                rejected: Future = Future()
                rejected.set_exception(SchedulerTerminatedError())
                return rejected

            slot = _Slot(process)
            self._total_submitted += 1

            if self._state is SchedulerState.GATED:
                self._deferred.append(slot)
                logger.debug(f"Deferred event until init settles (waiting: {len(self._deferred)})")
                return slot.future

            self._run(slot, propagate=True)
            return slot.future

    def unmount(self) -> bool:
        """Flush and stop because the logging context is torn down."""
        return self.shutdown(is_unloading=False)

    def page_closing(self) -> bool:
        """Flush and stop because the host is closing."""
        return self.shutdown(is_unloading=True)

    def shutdown(self, is_unloading: bool = False) -> bool:
        """Cancel the timer and flush everything already processed.

        Calling this more than once is a no-op.

        Returns:
            True if a final batch was delivered to the sink
        """
        with self._lock:
            if self._state is SchedulerState.TERMINATED:
                logger.debug("Scheduler is already shut down")
                return False

            self._state = SchedulerState.TERMINATED

            for unsubscribe in self._unsubscribers:
                unsubscribe()
            self._unsubscribers = []

            # Completed events stuck behind a still-running one are flushed too
            completed = [slot for slot in self._slots if slot.done]
            unfinished = [slot for slot in self._slots if not slot.done]
            deferred = list(self._deferred)
            self._slots.clear()
            self._deferred.clear()

            dropped = len(unfinished) + len(deferred)
            self._dropped_on_shutdown = dropped
            if dropped:
                logger.warning(f"Dropping {dropped} events not processed before shutdown ({len(deferred)} waiting for init, {len(unfinished)} still running)")

            delivered = self.queue.shutdown(is_unloading, leftovers=[slot.value for slot in completed])

            for slot in completed:
                slot.future.set_result(slot.value)
            for slot in unfinished + deferred:
                slot.future.set_exception(SchedulerTerminatedError("scheduler shut down before the event was processed"))

        self._executor.shutdown(wait=False)
        self._log_final_stats()
        return delivered

    def get_stats(self) -> Dict[str, Any]:
        """Get scheduler statistics."""
        with self._lock:
            init_error = self.gate.error
            return {
                "state": self.state.value,
                "created_at": self._created_at.isoformat(),
                "init_settled": self.gate.settled,
                "init_error": repr(init_error) if init_error is not None else None,
                "deferred_events": len(self._deferred),
                "in_flight_events": len(self._slots),
                "total_submitted": self._total_submitted,
                "total_failed": self._total_failed,
                "dropped_on_shutdown": self._dropped_on_shutdown,
                "queue": self.queue.get_stats(),
                "sink": self.dispatcher.get_stats(),
            }

    def __enter__(self) -> "LogScheduler":
        if not self._started:
            self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()

    def _on_init_settled(self, error: Optional[BaseException]) -> None:
        with self._lock:
            if self._state is not SchedulerState.GATED:
                return

            self._state = SchedulerState.IDLE
            self.queue.start_timer()

            deferred = list(self._deferred)
            self._deferred.clear()
            if deferred:
                logger.info(f"Init settled, processing {len(deferred)} deferred events")

            for slot in deferred:
                self._run(slot, propagate=False)

    def _run(self, slot: _Slot, propagate: bool) -> None:
        """Run a slot's processing function. Caller holds the lock."""
        self._slots.append(slot)

        try:
            result = slot.process()
            pending = as_future(result, self._executor)
        except Exception as e:
            self._fail(slot, e, log=not propagate)
            if propagate:
                raise
            return
        except BaseException as e:
            # KeyboardInterrupt / SystemExit: release the slot, then let it through
            self._fail(slot, e, log=False)
            raise

        if pending is None:
            self._complete(slot, result)
        else:
            pending.add_done_callback(partial(self._on_async_done, slot))

    def _on_async_done(self, slot: _Slot, future: Future) -> None:
        with self._lock:
            if self._state is SchedulerState.TERMINATED or slot.future.done():
                return

            if future.cancelled():
                self._fail(slot, SchedulerTerminatedError("event processing was cancelled"), log=True)
                return

            error = future.exception()
            if error is not None:
                self._fail(slot, error, log=True)
            else:
                self._complete(slot, future.result())

    def _complete(self, slot: _Slot, value: Any) -> None:
        slot.done = True
        slot.value = value
        self._drain_completed()

    def _fail(self, slot: _Slot, error: BaseException, log: bool) -> None:
        try:
            self._slots.remove(slot)
        except ValueError:
            pass

        self._total_failed += 1
        if log:
            logger.opt(exception=error).error("Event handler failed, event not batched")
        else:
            logger.debug(f"Event handler raised {type(error).__name__}, event not batched")

        slot.future.set_exception(error)
        self._drain_completed()

    def _drain_completed(self) -> None:
        """Append completed events in call order, stopping at the first unfinished one."""
        while self._slots and self._slots[0].done:
            slot = self._slots.popleft()
            self.queue.append(slot.value)
            slot.future.set_result(slot.value)

    def _log_final_stats(self) -> None:
        stats = self.get_stats()
        queue_stats = stats["queue"]
        sink_stats = stats["sink"]
        logger.info(
            f"Scheduler stopped. Stats - Submitted: {stats['total_submitted']}, "
            f"Flushed: {queue_stats['total_events_flushed']}, "
            f"Batches delivered: {sink_stats['total_batches_delivered']}, "
            f"Failed handlers: {stats['total_failed']}, "
            f"Dropped on shutdown: {stats['dropped_on_shutdown']}"
        )
