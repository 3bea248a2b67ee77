"""End-to-end tests for the reporting surface.

These follow the batching scenarios of the logger: threshold, interval,
unmount, page closing and init gating, plus context handling.
"""

import asyncio
import threading
import time
from unittest.mock import Mock

import pytest
from loguru import logger

from batchlog import EventType, LifecycleHub, UnknownEventTypeError, create_logger

FLUSH_INTERVAL = 0.5


class FlushRecorder:
    """Flush sink that records every call."""

    def __init__(self):
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, events, is_unloading):
        with self._lock:
            self.calls.append((list(events), is_unloading))


def build_logger(recorder, init=None, **batch_overrides):
    batch = {"enable": True, "threshold_size": 5, "interval": FLUSH_INTERVAL, "on_flush": recorder}
    batch.update(batch_overrides)
    click_fn = Mock(side_effect=lambda params, context, set_context: params)
    page_view_fn = Mock(side_effect=lambda params, context, set_context: {"view": params})
    event_logger = create_logger(init=init, click=click_fn, page_view=page_view_fn, batch=batch, max_workers=2)
    return event_logger, click_fn, page_view_fn


def test_flush_when_threshold_reached():
    logger.info("Testing threshold flush through clicks...")
    recorder = FlushRecorder()
    event_logger, click_fn, _ = build_logger(recorder)
    click_params = {"a": 1}

    with event_logger.provide(initial_context={}) as log:
        log.click(click_params)
        assert recorder.calls == []

        for _ in range(4):
            log.click(click_params)

        assert click_fn.call_count == 5
        assert recorder.calls[0] == ([click_params] * 5, False)


def test_flush_when_interval_reached():
    logger.info("Testing interval flush through clicks...")
    recorder = FlushRecorder()
    event_logger, click_fn, _ = build_logger(recorder)
    click_params = {"a": 1}

    log = event_logger.provide(initial_context={})
    for _ in range(3):
        log.click(click_params)
    assert recorder.calls == []

    time.sleep(FLUSH_INTERVAL + 0.2)

    assert click_fn.call_count == 3
    assert recorder.calls[0] == ([click_params] * 3, False)
    log.unmount()


def test_flush_when_unmounted():
    recorder = FlushRecorder()
    event_logger, _, _ = build_logger(recorder)
    click_params = {"a": 1}

    log = event_logger.provide(initial_context={})
    log.click(click_params)
    log.click(click_params)
    assert recorder.calls == []

    log.unmount()
    assert recorder.calls[0] == ([click_params, click_params], False)


def test_flush_when_page_closing():
    recorder = FlushRecorder()
    event_logger, _, _ = build_logger(recorder)
    hub = LifecycleHub()
    click_params = {"a": 1}

    log = event_logger.provide(initial_context={}, lifecycle=hub)
    log.click(click_params)
    log.click(click_params)
    assert recorder.calls == []

    hub.page_closing()
    assert ([click_params, click_params], True) in recorder.calls


def test_interval_waits_for_init():
    logger.info("Testing init gating through clicks...")
    recorder = FlushRecorder()

    async def init():
        await asyncio.sleep(0.3)

    event_logger, click_fn, _ = build_logger(recorder, init=init)
    log = event_logger.provide(initial_context={})

    log.click({"a": 1})
    log.click({"a": 1})
    assert click_fn.call_count == 0, "Handlers wait for init"

    assert log.wait_until_ready(timeout=2)
    assert click_fn.call_count == 2
    assert recorder.calls == []

    time.sleep(FLUSH_INTERVAL + 0.2)
    assert recorder.calls == [([{"a": 1}, {"a": 1}], False)]
    log.unmount()


def test_event_order_with_async_handlers():
    logger.info("Testing event order with asynchronous handlers...")
    recorder = FlushRecorder()

    async def slow_page_view(params, context, set_context):
        await asyncio.sleep(0.4)
        return {"view": params}

    async def fast_click(params, context, set_context):
        await asyncio.sleep(0.1)
        return {"click": params}

    event_logger = create_logger(
        click=fast_click,
        page_view=slow_page_view,
        batch={"threshold_size": 2, "interval": 5.0, "on_flush": recorder},
        max_workers=2,
    )
    log = event_logger.provide()

    page_view = log.page_view({"a": 1})
    click = log.click({"b": 1})

    time.sleep(0.25)
    assert not click.done(), "Click waits for the earlier page view"

    click.result(timeout=2)
    assert page_view.done()
    assert recorder.calls == [([{"view": {"a": 1}}, {"click": {"b": 1}}], False)]
    log.unmount()


def test_handlers_receive_context_and_setter():
    recorder = FlushRecorder()
    event_logger, click_fn, _ = build_logger(recorder)
    log = event_logger.provide(initial_context={"screen": "home"})

    log.click({"a": 1})

    params, context, set_context = click_fn.call_args.args
    assert params == {"a": 1}
    assert context == {"screen": "home"}

    set_context({"screen": "cart"})
    assert log.context == {"screen": "cart"}

    log.set_context(lambda previous: {**previous, "user": "u1"})
    assert log.context == {"screen": "cart", "user": "u1"}

    log.click({"a": 2})
    assert click_fn.call_args.args[1] == {"screen": "cart", "user": "u1"}
    log.unmount()


def test_custom_event_types():
    recorder = FlushRecorder()
    event_logger = create_logger(
        handlers={"impression": lambda params, context, set_context: ("impression", params)},
        batch={"threshold_size": 1, "interval": 1.0, "on_flush": recorder},
        max_workers=1,
    )
    log = event_logger.provide()

    log.report("impression", "banner")
    assert recorder.calls == [([("impression", "banner")], False)]

    with pytest.raises(UnknownEventTypeError):
        log.report("scroll", {})
    with pytest.raises(KeyError):
        log.report(EventType.CLICK, {})
    log.unmount()


def test_handler_error_reaches_reporter():
    recorder = FlushRecorder()

    def broken(params, context, set_context):
        raise ValueError("bad click")

    event_logger = create_logger(click=broken, batch={"threshold_size": 2, "interval": 1.0, "on_flush": recorder}, max_workers=1)
    log = event_logger.provide()

    with pytest.raises(ValueError):
        log.click({})

    assert log.get_stats()["queue"]["pending_size"] == 0
    log.unmount()
    assert recorder.calls == []


def test_batching_disabled_without_sink():
    click_fn = Mock(side_effect=lambda params, context, set_context: params)
    event_logger = create_logger(click=click_fn, max_workers=1)
    log = event_logger.provide()

    future = log.click({"a": 1})

    assert future.result(timeout=1) == {"a": 1}
    stats = log.get_stats()
    assert stats["queue"]["flushes_by_trigger"]["single"] == 1
    assert stats["sink"]["total_batches_discarded"] == 1
    log.unmount()


def test_batching_disabled_with_sink_flushes_each_event():
    recorder = FlushRecorder()
    event_logger, _, _ = build_logger(recorder, enable=False)
    log = event_logger.provide()

    log.click("a")
    log.click("b")

    assert recorder.calls == [(["a"], False), (["b"], False)]
    log.unmount()


def test_contexts_are_independent():
    recorder = FlushRecorder()
    event_logger, _, _ = build_logger(recorder, threshold_size=2)

    first = event_logger.provide()
    second = event_logger.provide()

    first.click("first")
    second.click("second")
    assert recorder.calls == []

    first.click("first")
    assert recorder.calls == [(["first", "first"], False)]

    first.unmount()
    second.unmount()
    assert recorder.calls[-1] == (["second"], False)
