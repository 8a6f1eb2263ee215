"""Flush scheduler that coalesces a stream of events into bounded batches.

A batch is delivered to the consumer when the first of these happens:

* no new event arrived for ``delay`` seconds (idle debounce),
* ``max_delay`` seconds passed since the batch received its first event,
* the batch reached ``max_batch_size`` events,
* the caller forces it with :meth:`FlushScheduler.flush_batch` or tears the
  scheduler down with :meth:`FlushScheduler.close`.

All state lives on one asyncio event loop. Timer callbacks, ingress and
flushes never interleave mid-operation, so no lock is taken. Foreign threads
must go through :meth:`FlushScheduler.add_to_batch_threadsafe`.
"""

import asyncio
import enum
import inspect
import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from update_batcher.accumulator import BatchAccumulator
from update_batcher.config import BatchConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

FlushCallback = Callable[[list[Any]], Awaitable[Any] | None]


class BatcherError(Exception):
    """Base class for scheduler errors."""


class SchedulerClosedError(BatcherError, RuntimeError):
    """Raised when events are offered to a scheduler that was torn down."""


class FlushReason(str, enum.Enum):
    DEBOUNCE = "debounce"
    CEILING = "ceiling"
    SIZE = "size"
    MANUAL = "manual"
    TEARDOWN = "teardown"
    PASSTHROUGH = "passthrough"


@dataclass
class FlushStats:
    flushes: Counter = field(default_factory=Counter)
    events: Counter = field(default_factory=Counter)

    def record(self, reason: FlushReason, size: int) -> None:
        self.flushes[reason] += 1
        self.events[reason] += size

    @property
    def total_flushes(self) -> int:
        return sum(self.flushes.values())

    @property
    def total_events(self) -> int:
        return sum(self.events.values())

    def summary(self) -> dict[str, int]:
        return {reason.value: count for reason, count in self.flushes.items()}


class FlushScheduler(Generic[T]):
    def __init__(
        self,
        on_flush: FlushCallback,
        *,
        delay: float = 0.15,
        max_delay: float = 0.5,
        max_batch_size: int = 50,
        enabled: bool = True,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._config = BatchConfig(
            delay=delay,
            max_delay=max_delay,
            max_batch_size=max_batch_size,
            enabled=enabled,
        )
        self._on_flush = on_flush
        self._loop = loop
        self._queue: BatchAccumulator[T] = BatchAccumulator(clock=self._now)
        self._debounce_timer: asyncio.TimerHandle | None = None
        self._ceiling_timer: asyncio.TimerHandle | None = None
        self._deliveries: set[asyncio.Future] = set()
        self._awaiting_deliveries = False
        self._closed = False
        self.stats = FlushStats()

    @classmethod
    def from_config(
        cls,
        on_flush: FlushCallback,
        config: BatchConfig,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> "FlushScheduler[T]":
        return cls(on_flush, **config.model_dump(), loop=loop)

    @property
    def config(self) -> BatchConfig:
        return self._config

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return len(self._queue)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        # Bound lazily so schedulers can be built before the loop starts.
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _now(self) -> float:
        return self._get_loop().time()

    def add_to_batch(self, event: T) -> None:
        """Accept one event; may deliver synchronously on the size ceiling."""
        if self._closed:
            raise SchedulerClosedError("Cannot add events to a closed scheduler")

        if not self._config.enabled:
            self._deliver([event], FlushReason.PASSTHROUGH)
            return

        self._queue.append(event)

        if len(self._queue) >= self._config.max_batch_size:
            self._flush(FlushReason.SIZE)
            return

        loop = self._get_loop()

        # Every append restarts the idle clock
        if self._debounce_timer is not None:
            self._debounce_timer.cancel()
        self._debounce_timer = loop.call_later(self._config.delay, self._on_debounce)

        # The ceiling is armed once per batch
        if self._ceiling_timer is None:
            elapsed = loop.time() - self._queue.batch_start_time
            remaining = self._config.max_delay - elapsed
            if remaining <= 0:
                self._flush(FlushReason.CEILING)
                return
            self._ceiling_timer = loop.call_later(remaining, self._on_ceiling)

    def add_to_batch_threadsafe(self, event: T) -> None:
        """Hand an event over from another thread to the scheduler's loop."""
        if self._loop is None:
            raise RuntimeError("Scheduler is not bound to an event loop yet")
        self._loop.call_soon_threadsafe(self.add_to_batch, event)

    def flush_batch(self) -> bool:
        """Deliver whatever is pending now. Returns False if nothing was queued."""
        return self._flush(FlushReason.MANUAL)

    def close(self) -> None:
        """Tear down: cancel both timers and deliver the remaining batch.

        Safe to call more than once. A closed scheduler rejects new events.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_timers()
        pending = len(self._queue)
        self._flush(FlushReason.TEARDOWN)
        logger.info("Flush scheduler closed (drained %d pending event(s))", pending)
        if self._deliveries and not self._awaiting_deliveries:
            logger.warning(
                "%d asynchronous delivery(ies) still running after close(); "
                "await aclose() to wait for them",
                len(self._deliveries),
            )

    async def aclose(self) -> None:
        """Close, then wait for asynchronous deliveries still in flight.

        The first consumer error among them is re-raised here.
        """
        self._awaiting_deliveries = True
        self.close()
        if not self._deliveries:
            return
        results = await asyncio.gather(*list(self._deliveries), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    def _on_debounce(self) -> None:
        self._debounce_timer = None
        self._flush(FlushReason.DEBOUNCE)

    def _on_ceiling(self) -> None:
        self._ceiling_timer = None
        if self._queue.is_empty():
            return
        self._flush(FlushReason.CEILING)

    def _cancel_timers(self) -> None:
        if self._debounce_timer is not None:
            self._debounce_timer.cancel()
            self._debounce_timer = None
        if self._ceiling_timer is not None:
            self._ceiling_timer.cancel()
            self._ceiling_timer = None

    def _flush(self, reason: FlushReason) -> bool:
        if self._queue.is_empty():
            return False
        # State must be reset before the consumer runs: an event added
        # from inside the callback starts a new batch.
        batch = self._queue.drain()
        self._cancel_timers()
        self._deliver(batch, reason)
        return True

    def _deliver(self, batch: list[T], reason: FlushReason) -> None:
        self.stats.record(reason, len(batch))
        logger.debug("Flushing %d event(s) (%s)", len(batch), reason.value)
        result = self._on_flush(batch)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result, loop=self._get_loop())
            self._deliveries.add(task)
            task.add_done_callback(self._on_delivery_done)

    def _on_delivery_done(self, task: asyncio.Future) -> None:
        self._deliveries.discard(task)
        # Errors awaited by aclose() are raised there instead
        if task.cancelled() or self._awaiting_deliveries:
            return
        exc = task.exception()
        if exc is not None:
            self._get_loop().call_exception_handler(
                {
                    "message": "Batch consumer failed",
                    "exception": exc,
                    "future": task,
                }
            )

    def __enter__(self) -> "FlushScheduler[T]":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    async def __aenter__(self) -> "FlushScheduler[T]":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
