"""Tests for update_batcher.source module."""

import asyncio
import random
from unittest.mock import MagicMock

from update_batcher.items import STATUSES
from update_batcher.source import FakeEventSource


def _source(**kwargs) -> FakeEventSource:
    return FakeEventSource(rng=random.Random(42), clock=lambda: 1000.0, **kwargs)


async def test_emit_push_assigns_sequential_ids():
    source = _source()
    listener = MagicMock()
    source._listeners["push"].append(listener)

    first = source.emit_push()
    second = source.emit_push()

    assert (first.id, second.id) == (0, 1)
    assert first.timestamp == 1000.0
    assert first.status in STATUSES
    assert 0 <= first.value < 1000
    assert listener.call_count == 2
    assert source.items == [first, second]


async def test_emit_update_without_items():
    source = _source()
    assert source.emit_update() is None


async def test_emit_update_rerolls_existing_item():
    source = _source()
    pushed = source.emit_push()
    updated = source.emit_update()
    assert updated.id == pushed.id
    assert source.items == [updated]


async def test_push_emitter_runs_while_subscribed():
    source = _source(push_interval=0.02)
    received = []
    unsubscribe = source.on_push(received.append)
    assert source.is_running("push")
    assert not source.is_running("update")

    await asyncio.sleep(0.11)
    unsubscribe()
    await asyncio.sleep(0)
    count = len(received)
    assert count >= 3
    assert not source.is_running("push")

    await asyncio.sleep(0.05)
    assert len(received) == count


async def test_emitter_stops_after_last_listener():
    source = _source(push_interval=0.02)
    unsub_a = source.on_push(MagicMock())
    unsub_b = source.on_push(MagicMock())
    unsub_a()
    assert source.is_running("push")
    unsub_b()
    assert not source.is_running("push")
    # Unsubscribing twice is harmless
    unsub_b()


async def test_update_emitter_sends_updates():
    source = _source(push_interval=0.01, update_interval=0.02)
    updates = []
    source.on_push(lambda item: None)
    source.on_update(updates.append)
    await asyncio.sleep(0.12)
    known_ids = {i.id for i in source.items}
    await source.close()
    assert updates
    assert {u.id for u in updates} <= known_ids


async def test_failing_listener_does_not_stop_others():
    source = _source()
    good = MagicMock()
    source._listeners["push"].extend([MagicMock(side_effect=RuntimeError("boom")), good])
    source.emit_push()
    good.assert_called_once()


async def test_close_cancels_emitters():
    source = _source(push_interval=0.01, update_interval=0.01)
    source.on_push(MagicMock())
    source.on_update(MagicMock())
    push_task = source._tasks["push"]
    update_task = source._tasks["update"]
    await source.close()
    assert not source.is_running("push")
    assert not source.is_running("update")
    assert push_task.done()
    assert update_task.done()


async def test_close_waits_for_already_unsubscribed_emitter():
    source = _source(push_interval=0.01)
    unsubscribe = source.on_push(MagicMock())
    task = source._tasks["push"]
    unsubscribe()
    await source.close()
    assert task.done()
    assert source._cancelled == set()


async def test_close_forgets_items_and_listeners():
    source = _source()
    listener = MagicMock()
    source.on_push(listener)
    source.emit_push()
    await source.close()
    assert source.items == []
    assert source.emit_update() is None
    source.emit_push()
    listener.assert_called_once()


async def test_emitter_lifecycle_logged_at_info(caplog):
    source = _source(push_interval=0.01)
    with caplog.at_level("INFO", logger="update_batcher.source"):
        unsubscribe = source.on_push(MagicMock())
        unsubscribe()
        await source.close()
    messages = [r.getMessage() for r in caplog.records if r.levelname == "INFO"]
    assert "Starting push emitter" in messages
    assert "Stopping push emitter" in messages
