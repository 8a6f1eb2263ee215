"""State holder whose updates are applied one flushed batch at a time."""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

from update_batcher.config import BatchConfig
from update_batcher.scheduler import FlushScheduler

logger = logging.getLogger(__name__)

S = TypeVar("S")
U = TypeVar("U")


class BatchedState(Generic[S, U]):
    """Keep a value and fold scheduled updates into it per flush.

    ``update_fn(state, updates)`` receives every update of one batch in
    arrival order and returns the new state. ``listener``, if given, is called
    with the new state after each applied batch.
    """

    def __init__(
        self,
        initial: S,
        update_fn: Callable[[S, list[U]], S],
        config: BatchConfig | None = None,
        listener: Callable[[S], None] | None = None,
    ) -> None:
        self._state = initial
        self._update_fn = update_fn
        self._listener = listener
        self._version = 0
        self._scheduler: FlushScheduler[U] = FlushScheduler.from_config(
            self._apply, config or BatchConfig()
        )

    @property
    def state(self) -> S:
        return self._state

    @property
    def version(self) -> int:
        """Number of batches applied so far."""
        return self._version

    @property
    def scheduler(self) -> FlushScheduler[U]:
        return self._scheduler

    def schedule_update(self, update: U) -> None:
        self._scheduler.add_to_batch(update)

    def flush(self) -> bool:
        return self._scheduler.flush_batch()

    def close(self) -> None:
        self._scheduler.close()

    def _apply(self, updates: list[U]) -> None:
        self._state = self._update_fn(self._state, updates)
        self._version += 1
        logger.debug("Applied batch %d with %d update(s)", self._version, len(updates))
        if self._listener is not None:
            self._listener(self._state)
