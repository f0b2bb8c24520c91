# src/staking_rewards/ledger/checked.py
"""Checked fixed-width unsigned arithmetic.

Python ints never overflow, so every monetary or index quantity goes through
these helpers to keep u64/u128 semantics: any result outside [0, MAX] raises
ArithmeticOverflow and the surrounding operation aborts.
"""

from __future__ import annotations

from staking_rewards.ledger.constants import SECONDS_PER_DAY, U64_MAX, U128_MAX
from staking_rewards.ledger.errors import math_overflow

_MAX = {"u64": U64_MAX, "u128": U128_MAX}


def _bound(width: str) -> int:
    try:
        return _MAX[width]
    except KeyError:
        raise ValueError(f"unknown width: {width!r}") from None


def _check(op: str, a: int, b: int, result: int, width: str) -> int:
    if result < 0 or result > _bound(width):
        raise math_overflow(op, a, b, width)
    return result


def checked_add(a: int, b: int, width: str = "u64") -> int:
    return _check("add", a, b, int(a) + int(b), width)


def checked_sub(a: int, b: int, width: str = "u64") -> int:
    return _check("sub", a, b, int(a) - int(b), width)


def checked_mul(a: int, b: int, width: str = "u64") -> int:
    return _check("mul", a, b, int(a) * int(b), width)


def checked_div(a: int, b: int, width: str = "u64") -> int:
    """Floor division; a zero divisor counts as overflow."""
    if int(b) == 0:
        raise math_overflow("div", a, b, width)
    return _check("div", a, b, int(a) // int(b), width)


def to_u64(v: int) -> int:
    """Narrow a u128 intermediate back to u64."""
    return _check("narrow", v, 0, int(v), "u64")


def day_floor(ts: int) -> int:
    """Truncate a unix timestamp to the start of its 86400-second day."""
    t = int(ts)
    return t - (t % SECONDS_PER_DAY)
