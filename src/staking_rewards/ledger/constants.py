# src/staking_rewards/ledger/constants.py
"""Accrual constants.

Anchors:
- Index precision: 1e16 fixed-point
- Settlement granularity: one UTC day (86400 s)
- Timelines are bounded at construction
"""

from __future__ import annotations

# Fixed-point scale of the cumulative reward index
PRECISION: int = 10_000_000_000_000_000

SECONDS_PER_DAY: int = 86_400

# Unsigned widths used by the checked arithmetic guard
U64_MAX: int = 2**64 - 1
U128_MAX: int = 2**128 - 1

# Timeline capacities
POOL_DECAYS_CAPACITY: int = 365
INDEX_HISTORY_CAPACITY: int = 1095
POSITION_DECAYS_CAPACITY: int = 50
