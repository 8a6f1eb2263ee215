"""Simulated event source emitting new items and updates at fixed rates."""

import asyncio
import logging
import random
import time
from collections.abc import Callable
from dataclasses import replace

from update_batcher.items import STATUSES, DataItem

logger = logging.getLogger(__name__)

PUSH = "push"
UPDATE = "update"

Listener = Callable[[DataItem], None]


class FakeEventSource:
    """Pushes a new item every ``push_interval`` seconds and re-rolls a random
    existing item every ``update_interval`` seconds.

    Each emitter runs only while it has at least one listener.
    """

    def __init__(
        self,
        push_interval: float = 0.1,
        update_interval: float = 0.2,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._intervals = {PUSH: push_interval, UPDATE: update_interval}
        self._rng = rng or random.Random()
        self._clock = clock
        self._listeners: dict[str, list[Listener]] = {PUSH: [], UPDATE: []}
        self._tasks: dict[str, asyncio.Task | None] = {PUSH: None, UPDATE: None}
        self._cancelled: set[asyncio.Task] = set()
        self._next_id = 0
        self._items: list[DataItem] = []

    @property
    def items(self) -> list[DataItem]:
        return list(self._items)

    def is_running(self, kind: str) -> bool:
        task = self._tasks[kind]
        return task is not None and not task.done()

    def on_push(self, callback: Listener) -> Callable[[], None]:
        return self._subscribe(PUSH, callback)

    def on_update(self, callback: Listener) -> Callable[[], None]:
        return self._subscribe(UPDATE, callback)

    def _subscribe(self, kind: str, callback: Listener) -> Callable[[], None]:
        listeners = self._listeners[kind]
        listeners.append(callback)
        if len(listeners) == 1:
            self._start(kind)

        def unsubscribe() -> None:
            if callback in listeners:
                listeners.remove(callback)
            if not listeners:
                self._stop(kind)

        return unsubscribe

    def emit_push(self) -> DataItem:
        item = DataItem(
            id=self._next_id,
            timestamp=self._clock(),
            value=self._rng.random() * 1000,
            status=self._rng.choice(STATUSES),
        )
        self._next_id += 1
        self._items.append(item)
        self._notify(PUSH, item)
        return item

    def emit_update(self) -> DataItem | None:
        if not self._items:
            return None
        idx = self._rng.randrange(len(self._items))
        item = replace(
            self._items[idx],
            timestamp=self._clock(),
            value=self._rng.random() * 1000,
            status=self._rng.choice(STATUSES),
        )
        self._items[idx] = item
        self._notify(UPDATE, item)
        return item

    def _notify(self, kind: str, item: DataItem) -> None:
        for callback in list(self._listeners[kind]):
            try:
                callback(item)
            except Exception:
                logger.exception("%s listener failed for item %d", kind, item.id)

    async def _loop(self, kind: str) -> None:
        emit = self.emit_push if kind == PUSH else self.emit_update
        interval = self._intervals[kind]
        try:
            while True:
                await asyncio.sleep(interval)
                emit()
        except asyncio.CancelledError:
            return

    def _start(self, kind: str) -> None:
        if self.is_running(kind):
            return
        logger.info("Starting %s emitter", kind)
        self._tasks[kind] = asyncio.create_task(self._loop(kind))

    def _stop(self, kind: str) -> None:
        task = self._tasks[kind]
        if task is not None and not task.done():
            logger.info("Stopping %s emitter", kind)
            task.cancel()
            self._cancelled.add(task)
            task.add_done_callback(self._cancelled.discard)
        self._tasks[kind] = None

    async def close(self) -> None:
        """Drop all listeners and known items, cancel both emitters and wait
        for every emitter cancelled so far to finish.
        """
        for kind in (PUSH, UPDATE):
            self._listeners[kind].clear()
            self._stop(kind)
        self._items = []
        for task in list(self._cancelled):
            try:
                await task
            except asyncio.CancelledError:
                pass
