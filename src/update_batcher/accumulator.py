"""Ordered, append-only buffer of pending events."""

import time
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class BatchAccumulator(Generic[T]):
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._events: list[T] = []
        self._batch_start_time: float | None = None

    @property
    def batch_start_time(self) -> float | None:
        """Clock reading taken when the current batch received its first event."""
        return self._batch_start_time

    def append(self, event: T) -> None:
        if not self._events:
            self._batch_start_time = self._clock()
        self._events.append(event)

    def drain(self) -> list[T]:
        """Return all buffered events in arrival order and start a fresh batch."""
        events = self._events
        self._events = []
        self._batch_start_time = None
        return events

    def is_empty(self) -> bool:
        return len(self._events) == 0

    def __len__(self) -> int:
        return len(self._events)
