"""Helpers for values that may be produced asynchronously.

Handlers, init actions and sinks may return a plain value, a coroutine (or
other awaitable) or a ``concurrent.futures.Future``. Everything asynchronous is
normalized to a ``Future`` so callers can attach completion callbacks.
"""

from __future__ import annotations

import asyncio
import inspect
from concurrent.futures import Executor, Future
from typing import Any, Awaitable, Optional


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def as_future(result: Any, executor: Executor) -> Optional[Future]:
    """Return a future for an asynchronous result, or None for a plain value.

    Coroutines and awaitables are run to completion with ``asyncio.run`` on a
    worker thread of ``executor``.
    """
    if isinstance(result, Future):
        return result

    if inspect.iscoroutine(result):
        return executor.submit(asyncio.run, result)

    if inspect.isawaitable(result):
        return executor.submit(asyncio.run, _await(result))

    return None
