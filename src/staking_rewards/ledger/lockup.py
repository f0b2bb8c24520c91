# src/staking_rewards/ledger/lockup.py
from __future__ import annotations

from enum import Enum
from typing import Any

from staking_rewards.ledger.checked import checked_add, checked_mul, day_floor
from staking_rewards.ledger.constants import SECONDS_PER_DAY
from staking_rewards.ledger.errors import invalid_lockup_period


class LockupPeriod(str, Enum):
    """Lockup choice. The bonus part of the multiplier lasts `days()` days."""

    NONE = "none"
    FLEX = "flex"
    THREE_MONTHS = "three_months"
    SIX_MONTHS = "six_months"
    ONE_YEAR = "one_year"

    def multiplier(self) -> int:
        return _MULTIPLIERS[self]

    def days(self) -> int:
        d = _DAYS.get(self)
        if d is None:
            raise invalid_lockup_period(self.value)
        return d

    def end_timestamp(self, start_ts: int) -> int:
        return checked_add(day_floor(start_ts), checked_mul(self.days(), SECONDS_PER_DAY))


_MULTIPLIERS = {
    LockupPeriod.NONE: 0,
    LockupPeriod.FLEX: 1,
    LockupPeriod.THREE_MONTHS: 2,
    LockupPeriod.SIX_MONTHS: 4,
    LockupPeriod.ONE_YEAR: 6,
}

_DAYS = {
    LockupPeriod.FLEX: 5,
    LockupPeriod.THREE_MONTHS: 90,
    LockupPeriod.SIX_MONTHS: 180,
    LockupPeriod.ONE_YEAR: 365,
}


def parse_lockup_period(v: Any) -> LockupPeriod:
    """Accept an enum member or its wire name; the unset variant is rejected."""
    if isinstance(v, LockupPeriod):
        p = v
    else:
        s = str(v or "").strip().lower()
        try:
            p = LockupPeriod(s)
        except ValueError:
            raise invalid_lockup_period(v) from None
    if p is LockupPeriod.NONE:
        raise invalid_lockup_period(v)
    return p
