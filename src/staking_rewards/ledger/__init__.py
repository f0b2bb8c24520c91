# src/staking_rewards/ledger/__init__.py
"""
Staking rewards: accrual core

Pure, I/O-free accounting:
  - constants: fixed-point scale, day length, timeline capacities
  - checked: u64/u128 arithmetic guard and day flooring
  - lockup: lockup periods, multipliers and durations
  - timeline: bounded day-keyed ordered map
  - position: per-participant lazy settlement
  - pool: cumulative index, scheduled decays, stake-changing operations
  - errors: error taxonomy shared by every layer

Nothing here logs, persists or locks; runtime.engine wraps these types in
all-or-nothing operations.
"""

from __future__ import annotations

__all__ = [
    "constants",
    "checked",
    "lockup",
    "timeline",
    "position",
    "pool",
    "errors",
]
