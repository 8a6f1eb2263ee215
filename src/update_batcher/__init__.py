"""Coalesce high-frequency update events into bounded, timed batches."""

from update_batcher.accumulator import BatchAccumulator
from update_batcher.config import BatchConfig
from update_batcher.scheduler import (
    BatcherError,
    FlushReason,
    FlushScheduler,
    FlushStats,
    SchedulerClosedError,
)
from update_batcher.state import BatchedState

__all__ = [
    "BatchAccumulator",
    "BatchConfig",
    "BatchedState",
    "BatcherError",
    "FlushReason",
    "FlushScheduler",
    "FlushStats",
    "SchedulerClosedError",
]
