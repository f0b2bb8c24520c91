# src/staking_rewards/ledger/timeline.py
"""Bounded day-keyed ordered map.

Backed by two parallel sorted lists searched with bisect: lookups are
O(log n); inserts and removes shift at most `capacity` slots. Keys are
day-aligned unix timestamps, values are unsigned ints of a fixed width.

Capacity policy: adding a NEW key to a full timeline raises CapacityExceeded.
Merging into an existing key never fails on capacity.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from typing import Iterator, List, Optional, Tuple

from staking_rewards.ledger.checked import checked_add, checked_sub
from staking_rewards.ledger.errors import capacity_exceeded


class OrderedTimeline:
    __slots__ = ("capacity", "width", "_keys", "_values")

    def __init__(self, capacity: int, *, width: str = "u64") -> None:
        if int(capacity) <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = int(capacity)
        self.width = str(width)
        self._keys: List[int] = []
        self._values: List[int] = []

    # ---- inspection ----

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, day: object) -> bool:
        return self._index_of(day) is not None  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._keys))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OrderedTimeline):
            return NotImplemented
        return (
            self.capacity == other.capacity
            and self.width == other.width
            and self._keys == other._keys
            and self._values == other._values
        )

    def __repr__(self) -> str:
        return f"OrderedTimeline(capacity={self.capacity}, items={self.items()!r})"

    def is_full(self) -> bool:
        return len(self._keys) >= self.capacity

    def items(self) -> List[Tuple[int, int]]:
        return list(zip(self._keys, self._values))

    def items_reversed(self) -> List[Tuple[int, int]]:
        return list(zip(reversed(self._keys), reversed(self._values)))

    def first_key(self) -> Optional[int]:
        return self._keys[0] if self._keys else None

    def last_key(self) -> Optional[int]:
        return self._keys[-1] if self._keys else None

    def _index_of(self, day: int) -> Optional[int]:
        d = int(day)
        i = bisect_left(self._keys, d)
        if i < len(self._keys) and self._keys[i] == d:
            return i
        return None

    # ---- point access ----

    def get(self, day: int) -> Optional[int]:
        i = self._index_of(day)
        return None if i is None else self._values[i]

    def set(self, day: int, value: int) -> None:
        """Overwrite an existing entry or insert a new one."""
        d = int(day)
        v = checked_add(0, value, self.width)
        i = bisect_left(self._keys, d)
        if i < len(self._keys) and self._keys[i] == d:
            self._values[i] = v
            return
        if self.is_full():
            raise capacity_exceeded(self.capacity, d)
        self._keys.insert(i, d)
        self._values.insert(i, v)

    def insert_or_add(self, day: int, delta: int) -> int:
        """Merge `delta` into the entry at `day` by addition; returns the new value."""
        cur = self.get(day)
        new = checked_add(cur or 0, delta, self.width)
        self.set(day, new)
        return new

    def subtract(self, day: int, delta: int) -> Optional[int]:
        """Reduce an existing entry by `delta`. Returns None when `day` is absent."""
        i = self._index_of(day)
        if i is None:
            return None
        self._values[i] = checked_sub(self._values[i], delta, self.width)
        return self._values[i]

    def remove(self, day: int) -> Optional[int]:
        i = self._index_of(day)
        if i is None:
            return None
        self._keys.pop(i)
        return self._values.pop(i)

    # ---- range access ----

    def floor_strict(self, day: int) -> Optional[int]:
        """Value of the greatest key strictly less than `day`."""
        i = bisect_left(self._keys, int(day))
        if i == 0:
            return None
        return self._values[i - 1]

    def consume_up_to(self, day: int) -> List[Tuple[int, int]]:
        """Remove and return, ascending, every entry with key <= `day`."""
        n = bisect_right(self._keys, int(day))
        if n == 0:
            return []
        out = list(zip(self._keys[:n], self._values[:n]))
        del self._keys[:n]
        del self._values[:n]
        return out

