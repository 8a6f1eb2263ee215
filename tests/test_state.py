"""Tests for update_batcher.state module."""

import asyncio
from unittest.mock import MagicMock

from update_batcher.config import BatchConfig
from update_batcher.items import BatchOperation, DataItem, apply_operations
from update_batcher.state import BatchedState


def _extend(state: list, updates: list) -> list:
    return state + updates


async def test_updates_applied_per_batch():
    state = BatchedState([], _extend, config=BatchConfig(delay=0.05))
    state.schedule_update(1)
    state.schedule_update(2)
    assert state.state == []

    await asyncio.sleep(0.15)
    assert state.state == [1, 2]
    assert state.version == 1


async def test_reducer_receives_whole_batch():
    update_fn = MagicMock(side_effect=lambda s, u: s + len(u))
    state = BatchedState(0, update_fn, config=BatchConfig(delay=1.0))
    for _ in range(4):
        state.schedule_update("tick")
    state.flush()

    update_fn.assert_called_once_with(0, ["tick"] * 4)
    assert state.state == 4


async def test_listener_sees_new_state():
    listener = MagicMock()
    state = BatchedState([], _extend, config=BatchConfig(delay=1.0), listener=listener)
    state.schedule_update("a")
    state.flush()
    listener.assert_called_once_with(["a"])


async def test_flush_without_updates_does_not_bump_version():
    state = BatchedState([], _extend)
    assert state.flush() is False
    assert state.version == 0


async def test_close_applies_pending_updates():
    state = BatchedState([], _extend, config=BatchConfig(delay=1.0))
    state.schedule_update("last")
    state.close()
    assert state.state == ["last"]
    assert state.scheduler.closed


def test_disabled_applies_each_update_immediately():
    state = BatchedState([], _extend, config=BatchConfig(enabled=False))
    state.schedule_update("a")
    state.schedule_update("b")
    assert state.state == ["a", "b"]
    assert state.version == 2


async def test_item_list_reducer():
    state = BatchedState([], apply_operations, config=BatchConfig(max_batch_size=2))
    item = DataItem(id=0, timestamp=0.0, value=1.0, status="active")
    state.schedule_update(BatchOperation("push", item))
    state.schedule_update(
        BatchOperation("update", DataItem(id=0, timestamp=1.0, value=2.0, status="completed"))
    )
    assert len(state.state) == 1
    assert state.state[0].status == "completed"
