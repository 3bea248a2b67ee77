"""Lifecycle signals that force a scheduler to flush and stop.

Two signals exist: "unmount" (the logging context is torn down) and "page
closing" (the host process is going away). A scheduler subscribes to both at
construction and unsubscribes when it shuts down.
"""

from __future__ import annotations

import atexit
import os
import signal
import sys
import threading
from types import FrameType
from typing import Callable, Dict, List, Optional, Protocol

from loguru import logger

# Type aliases for callbacks
LifecycleCallback = Callable[[], None]
Unsubscribe = Callable[[], None]


class LifecycleSignals(Protocol):
    """Source of unmount and page-closing signals."""

    def on_unmount(self, callback: LifecycleCallback) -> Unsubscribe:
        """Register a callback for the unmount signal."""
        ...

    def on_page_closing(self, callback: LifecycleCallback) -> Unsubscribe:
        """Register a callback for the page-closing signal."""
        ...


class LifecycleHub:
    """In-process lifecycle signal source.

    Each signal fires at most once; callbacks registered after it fired are
    never called.
    """

    _UNMOUNT = "unmount"
    _PAGE_CLOSING = "page_closing"

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._callbacks: Dict[str, List[LifecycleCallback]] = {self._UNMOUNT: [], self._PAGE_CLOSING: []}
        self._fired: Dict[str, bool] = {self._UNMOUNT: False, self._PAGE_CLOSING: False}

    def on_unmount(self, callback: LifecycleCallback) -> Unsubscribe:
        return self._subscribe(self._UNMOUNT, callback)

    def on_page_closing(self, callback: LifecycleCallback) -> Unsubscribe:
        return self._subscribe(self._PAGE_CLOSING, callback)

    def unmount(self) -> None:
        """Emit the unmount signal."""
        self._fire(self._UNMOUNT)

    def page_closing(self) -> None:
        """Emit the page-closing signal."""
        self._fire(self._PAGE_CLOSING)

    def subscriber_count(self) -> int:
        with self._lock:
            return sum(len(callbacks) for callbacks in self._callbacks.values())

    def _subscribe(self, name: str, callback: LifecycleCallback) -> Unsubscribe:
        with self._lock:
            self._callbacks[name].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                try:
                    self._callbacks[name].remove(callback)
                except ValueError:
                    pass

        return unsubscribe

    def _fire(self, name: str) -> None:
        with self._lock:
            if self._fired[name]:
                return
            self._fired[name] = True
            callbacks = list(self._callbacks[name])

        logger.info(f"Lifecycle signal {name} - notifying {len(callbacks)} subscribers")

        for fn in callbacks:
            try:
                fn()
            except Exception:
                logger.exception(f"Lifecycle callback {fn} raised")


class ProcessLifecycle(LifecycleHub):
    """Maps process termination (exit signals and interpreter exit) to page closing.

    The flush runs inside the signal handler on the main thread, which may
    already hold one of batchlog's locks when the signal arrives. Every lock
    reachable from the flush path is an ``RLock`` so the handler can re-enter.
    """

    #: Exit signals we *always* hook
    _BASE_SIGNALS = [signal.SIGINT, signal.SIGTERM]
    if hasattr(signal, "SIGHUP"):
        _BASE_SIGNALS.append(signal.SIGHUP)

    #: Windows-specific mapping (Ctrl-Break, log-off, shutdown)
    if os.name == "nt" and hasattr(signal, "SIGBREAK"):
        _BASE_SIGNALS.append(signal.SIGBREAK)  # type: ignore[attr-defined]

    def __init__(self, exit_on_signal: bool = True) -> None:
        super().__init__()
        self.exit_on_signal = exit_on_signal
        self.signal_received = False
        self.received_signal: Optional[str] = None
        self._previous_handlers: Dict[int, object] = {}
        self._installed = False

    def install(self) -> "ProcessLifecycle":
        """Hook exit signals and interpreter exit."""
        if self._installed:
            return self

        for sig in self._BASE_SIGNALS:
            try:
                self._previous_handlers[sig] = signal.signal(sig, self._handle_exit)
            except (ValueError, OSError):  # not allowed in threads / rare OSes
                logger.warning(f"Could not hook signal {sig}")

        atexit.register(self.page_closing)
        self._installed = True
        return self

    def uninstall(self) -> None:
        """Restore the previous signal handlers and drop the exit hook."""
        if not self._installed:
            return

        for sig, previous in self._previous_handlers.items():
            try:
                signal.signal(sig, previous)  # type: ignore[arg-type]
            except (ValueError, OSError, TypeError):
                logger.warning(f"Could not restore handler for signal {sig}")

        self._previous_handlers.clear()
        atexit.unregister(self.page_closing)
        self._installed = False

    def is_signal_received(self) -> bool:
        return self.signal_received

    def _handle_exit(self, signum: int, frame: FrameType | None) -> None:
        if self.signal_received:
            sys.exit(0)

        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name} - flushing before shutdown")
        self.signal_received = True
        self.received_signal = signal_name

        self.page_closing()

        if self.exit_on_signal:
            sys.exit(0)
