"""Duplicate collapsing for scored results."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Generic, Hashable, Optional, Sequence, TypeVar

SIZE_BUCKET_BYTES = 100 * 1024 * 1024
TITLE_KEY_LENGTH = 50

_T = TypeVar("_T")


@dataclass
class DedupeResult(Generic[_T]):
    kept: list[_T] = field(default_factory=list)
    removed: int = 0


def title_size_key(title: str, size_bytes: int) -> tuple[str, int]:
    """Alphanumeric lower-cased title prefix plus a 100 MiB size bucket."""
    normalized = re.sub(r"[^a-z0-9]", "", title.lower())[:TITLE_KEY_LENGTH]
    return normalized, int(size_bytes / SIZE_BUCKET_BYTES + 0.5)


def dedupe_by_key(
    items: Sequence[_T],
    key: Callable[[_T], Optional[Hashable]],
    score: Callable[[_T], float],
) -> DedupeResult[_T]:
    """
    Collapse items sharing a key, keeping the strictly higher score.

    Ties keep the first item seen. Items whose key is None pass through
    untouched. The survivor takes the slot of the first item in its group.
    """
    slots: list[_T] = []
    slot_by_key: dict[Hashable, int] = {}
    removed = 0
    for item in items:
        item_key = key(item)
        if item_key is None:
            slots.append(item)
            continue
        index = slot_by_key.get(item_key)
        if index is None:
            slot_by_key[item_key] = len(slots)
            slots.append(item)
            continue
        removed += 1
        if score(item) > score(slots[index]):
            slots[index] = item
    return DedupeResult(kept=slots, removed=removed)
