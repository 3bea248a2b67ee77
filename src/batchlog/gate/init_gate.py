"""One-time initialization gate.

The gate runs the user's init action once. Until the action settles, the
scheduler defers every reported event and keeps its interval timer disarmed.
A failing action is logged and recorded, and the gate still settles so
deferred events are processed rather than stranded.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future
from typing import Any, Callable, Optional

from loguru import logger

from ..core.async_results import as_future

InitAction = Callable[[], Any]
SettledCallback = Callable[[Optional[BaseException]], None]


class InitGate:
    """Readiness signal for an optional, possibly asynchronous init action."""

    def __init__(self, action: Optional[InitAction], executor: Executor):
        """Initialize the gate.

        Args:
            action: Zero-argument init action, or None for an open gate
            executor: Worker pool that runs asynchronous init results
        """
        self.action = action
        self.executor = executor

        self._ready = threading.Event()
        self._lock = threading.RLock()
        self._started = False
        self._settling = False
        self._error: Optional[BaseException] = None
        self._on_settled: Optional[SettledCallback] = None

    @property
    def settled(self) -> bool:
        return self._ready.is_set()

    @property
    def error(self) -> Optional[BaseException]:
        """The init failure, if the action failed."""
        return self._error

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the gate settles. Returns False on timeout."""
        return self._ready.wait(timeout)

    def start(self, on_settled: SettledCallback) -> None:
        """Run the init action and call ``on_settled`` once it settles.

        A synchronous action settles before this method returns.
        """
        with self._lock:
            if self._started:
                logger.warning("Init gate is already started")
                return
            self._started = True
            self._on_settled = on_settled

        if self.action is None:
            self._settle(None)
            return

        try:
            result = self.action()
        except Exception as e:
            self._settle(e)
            return
        except BaseException as e:
            self._settle(e)
            raise

        try:
            pending = as_future(result, self.executor)
        except RuntimeError as e:
            self._settle(e)
            return

        if pending is None:
            self._settle(None)
            return

        logger.debug("Waiting for asynchronous init action to settle")
        pending.add_done_callback(self._on_action_done)

    def _on_action_done(self, future: Future) -> None:
        if future.cancelled():
            self._settle(RuntimeError("init action was cancelled"))
            return
        self._settle(future.exception())

    def _settle(self, error: Optional[BaseException]) -> None:
        with self._lock:
            if self._settling:
                return
            self._settling = True
            self._error = error
            callback = self._on_settled

        if error is not None:
            logger.opt(exception=error).error("Init action failed, continuing without it")
        else:
            logger.debug("Init action settled")

        # Waiters are released only after the callback has run
        try:
            if callback is not None:
                callback(error)
        finally:
            self._ready.set()
