"""Update Batcher demo entry point: wires source, scheduler and item list."""

import asyncio
import logging
import signal

from update_batcher.config import get_settings
from update_batcher.items import (
    BatchOperation,
    DataItem,
    apply_operations,
    sort_newest_first,
)
from update_batcher.source import FakeEventSource
from update_batcher.state import BatchedState

logger = logging.getLogger(__name__)


class UpdateBatcherApp:
    def __init__(self) -> None:
        self._settings = get_settings()
        self._shutdown_event = asyncio.Event()
        self._unsubscribe: list = []
        self._stopping = False

        # Configure logging
        logging.basicConfig(
            level=getattr(logging, self._settings.log_level, logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            force=True,
        )

        self._source = FakeEventSource(
            push_interval=self._settings.push_interval,
            update_interval=self._settings.update_interval,
        )
        self._items: BatchedState[list[DataItem], BatchOperation] = BatchedState(
            [],
            apply_operations,
            config=self._settings.batch_config(),
            listener=self._on_items_changed,
        )

    @property
    def items(self) -> list[DataItem]:
        """Current items, newest first."""
        return sort_newest_first(self._items.state)

    def _on_items_changed(self, items: list[DataItem]) -> None:
        logger.info(
            "Batch %d applied, %d item(s) listed", self._items.version, len(items)
        )

    def on_push(self, item: DataItem) -> None:
        self._items.schedule_update(BatchOperation(type="push", item=item))

    def on_update(self, item: DataItem) -> None:
        self._items.schedule_update(BatchOperation(type="update", item=item))

    async def start(self) -> None:
        """Subscribe to the source and run until shutdown."""
        logger.info("Update Batcher starting...")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.create_task(self.shutdown()))

        self._unsubscribe = [
            self._source.on_push(self.on_push),
            self._source.on_update(self.on_update),
        ]

        if self._settings.run_seconds > 0:
            loop.call_later(
                self._settings.run_seconds,
                lambda: asyncio.create_task(self.shutdown()),
            )

        await self._shutdown_event.wait()

    async def shutdown(self) -> None:
        """Graceful shutdown: stop the source first, then drain the batch."""
        if self._stopping:
            return
        self._stopping = True
        logger.info("Shutting down...")

        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        await self._source.close()
        await self._items.scheduler.aclose()

        stats = self._items.scheduler.stats
        logger.info(
            "Delivered %d event(s) in %d flush(es): %s",
            stats.total_events,
            stats.total_flushes,
            stats.summary(),
        )
        self._shutdown_event.set()
        logger.info("Shutdown complete")


async def _run() -> None:
    app = UpdateBatcherApp()
    await app.start()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
