"""Data items and the list-merge consumer for batched push/update operations."""

from dataclasses import dataclass
from typing import Literal

Status = Literal["active", "pending", "completed"]
OperationType = Literal["push", "update"]

STATUSES: tuple[Status, ...] = ("active", "pending", "completed")


@dataclass(frozen=True)
class DataItem:
    id: int
    timestamp: float
    value: float
    status: Status


@dataclass(frozen=True)
class BatchOperation:
    type: OperationType
    item: DataItem


def _changed(old: DataItem, new: DataItem) -> bool:
    return (
        old.value != new.value
        or old.status != new.status
        or old.timestamp != new.timestamp
    )


def apply_operations(
    items: list[DataItem], operations: list[BatchOperation]
) -> list[DataItem]:
    """Apply a flushed batch to a list of items, in batch order.

    ``push`` appends the item. ``update`` replaces the item with the same id,
    but only when one of its fields actually changed; updates for unknown ids
    are ignored. The input list is never mutated: if no operation changes
    anything the same list object is returned, otherwise a new one.
    """
    result = items
    positions: dict[int, int] | None = None

    for op in operations:
        if op.type == "push":
            if result is items:
                result = list(items)
            if positions is not None:
                positions.setdefault(op.item.id, len(result))
            result.append(op.item)
        elif op.type == "update":
            if positions is None:
                positions = {}
                for idx, item in enumerate(result):
                    positions.setdefault(item.id, idx)
            idx = positions.get(op.item.id)
            if idx is None or not _changed(result[idx], op.item):
                continue
            if result is items:
                result = list(items)
            result[idx] = op.item
        else:
            raise ValueError(f"Unknown operation type: {op.type!r}")

    return result


def sort_newest_first(items: list[DataItem]) -> list[DataItem]:
    return sorted(items, key=lambda item: item.id, reverse=True)
