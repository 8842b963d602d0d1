"""Unit tests for subscriptions: sync delivery, deferred batching and cancellation."""

import asyncio
import logging

import pytest

from snapstate import NotAProxyError, SetOperation, batch, flush, proxy, subscribe
from snapstate.scheduler import FlushScheduler


@pytest.mark.unit
@pytest.mark.subscription
def test_sync_subscription_delivers_each_operation_immediately(recorder):
    state = proxy({"count": 0})
    subscribe(state, recorder, notify_in_sync=True)

    state["count"] = 1
    assert recorder.batches == [[SetOperation(("count",), 1, 0)]]

    state["count"] = 2
    assert len(recorder.batches) == 2


@pytest.mark.unit
@pytest.mark.subscription
def test_deferred_subscription_delivers_after_the_write(recorder):
    state = proxy({"count": 0})
    subscribe(state, recorder)

    state["count"] = 1

    assert recorder.batches == [[SetOperation(("count",), 1, 0)]]


@pytest.mark.unit
@pytest.mark.subscription
def test_batch_coalesces_writes_into_one_delivery(recorder):
    state = proxy({"first": "", "last": ""})
    subscribe(state, recorder)

    with batch():
        state["first"] = "Ada"
        state["last"] = "Lovelace"
        assert recorder.batches == []

    assert len(recorder.batches) == 1
    assert [op.path for op in recorder.batches[0]] == [("first",), ("last",)]


@pytest.mark.unit
@pytest.mark.subscription
def test_consecutive_writes_without_a_loop_are_separate_deliveries(recorder):
    state = proxy({"first": "", "last": ""})
    subscribe(state, recorder)

    state["first"] = "Ada"
    state["last"] = "Lovelace"

    assert [[op.path for op in ops] for ops in recorder.batches] == [[("first",)], [("last",)]]


@pytest.mark.unit
@pytest.mark.subscription
def test_compound_mutation_is_one_deferred_delivery(recorder):
    items = proxy([3, 1, 2])
    subscribe(items, recorder)

    items.sort()

    assert len(recorder.batches) == 1


@pytest.mark.unit
@pytest.mark.subscription
def test_sync_subscription_inside_batch_is_not_deferred(recorder):
    state = proxy({"a": 0})
    subscribe(state, recorder, notify_in_sync=True)

    with batch():
        state["a"] = 1
        assert len(recorder.batches) == 1


@pytest.mark.unit
@pytest.mark.subscription
def test_unsubscribe_before_flush_cancels_pending_batch(recorder):
    state = proxy({"count": 0})
    unsubscribe = subscribe(state, recorder)

    with batch():
        state["count"] = 1
        unsubscribe()

    assert recorder.batches == []
    assert FlushScheduler.pending_count() == 0


@pytest.mark.unit
@pytest.mark.subscription
def test_unsubscribe_stops_future_deliveries(recorder):
    state = proxy({"count": 0})
    subscription = subscribe(state, recorder, notify_in_sync=True)

    subscription.unsubscribe()
    state["count"] = 1

    assert not subscription.active
    assert recorder.batches == []


@pytest.mark.unit
@pytest.mark.subscription
def test_unsubscribe_twice_is_harmless():
    state = proxy({})
    unsubscribe = subscribe(state, lambda ops: None)
    unsubscribe()
    unsubscribe()


@pytest.mark.unit
@pytest.mark.subscription
def test_multiple_subscribers_each_receive_operations():
    state = proxy({"n": 0})
    seen = []
    subscribe(state, lambda ops: seen.append("first"), notify_in_sync=True)
    subscribe(state, lambda ops: seen.append("second"), notify_in_sync=True)

    state["n"] = 1

    assert seen == ["first", "second"]


@pytest.mark.unit
@pytest.mark.subscription
def test_subscribe_requires_a_proxy(caplog):
    with caplog.at_level(logging.WARNING, logger="snapstate.vanilla"):
        with pytest.raises(NotAProxyError):
            subscribe({"plain": True}, lambda ops: None)
    assert "Please use proxy object" in caplog.text


@pytest.mark.unit
@pytest.mark.subscription
def test_deferred_callback_errors_are_logged_not_raised(caplog):
    state = proxy({"n": 0})

    def broken(ops):
        raise RuntimeError("subscriber failed")

    subscribe(state, broken)
    with caplog.at_level(logging.ERROR, logger="snapstate.scheduler"):
        state["n"] = 1

    assert state["n"] == 1
    assert "Error in deferred subscriber flush" in caplog.text


@pytest.mark.unit
@pytest.mark.subscription
def test_sync_callback_errors_reach_the_writer():
    state = proxy({"n": 0})

    def broken(ops):
        raise RuntimeError("subscriber failed")

    subscribe(state, broken, notify_in_sync=True)
    with pytest.raises(RuntimeError):
        state["n"] = 1


@pytest.mark.unit
@pytest.mark.subscription
def test_writes_from_a_deferred_callback_are_delivered_in_the_same_drain(recorder):
    state = proxy({"n": 0, "echo": 0})

    def echo(ops):
        if any(op.path == ("n",) for op in ops):
            state["echo"] = state["n"]

    subscribe(state, echo)
    subscribe(state, recorder)

    state["n"] = 5

    assert state["echo"] == 5
    assert [op.path for op in recorder.ops] == [("n",), ("echo",)]


@pytest.mark.unit
@pytest.mark.subscription
def test_event_loop_defers_delivery_to_the_next_iteration(recorder):
    async def scenario():
        state = proxy({"a": 0, "b": 0})
        subscribe(state, recorder)
        state["a"] = 1
        state["b"] = 2
        assert recorder.batches == []
        await asyncio.sleep(0)
        return state

    asyncio.run(scenario())

    assert len(recorder.batches) == 1
    assert [op.path for op in recorder.batches[0]] == [("a",), ("b",)]


@pytest.mark.unit
@pytest.mark.subscription
def test_event_loop_unsubscribe_cancels_pending_delivery(recorder):
    async def scenario():
        state = proxy({"a": 0})
        unsubscribe = subscribe(state, recorder)
        state["a"] = 1
        unsubscribe()
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert recorder.batches == []


@pytest.mark.unit
@pytest.mark.subscription
def test_flush_delivers_pending_batch_inside_a_turn(recorder):
    state = proxy({"a": 0})
    subscribe(state, recorder)

    with batch():
        state["a"] = 1
        flush()
        assert len(recorder.batches) == 1
