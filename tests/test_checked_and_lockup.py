from __future__ import annotations

import pytest

from staking_rewards.ledger.checked import checked_add, checked_div, checked_mul, checked_sub, day_floor, to_u64
from staking_rewards.ledger.constants import SECONDS_PER_DAY, U64_MAX, U128_MAX
from staking_rewards.ledger.errors import ArithmeticOverflow, DomainViolation
from staking_rewards.ledger.lockup import LockupPeriod, parse_lockup_period


def test_checked_ops_respect_width() -> None:
    assert checked_add(U64_MAX - 1, 1) == U64_MAX
    with pytest.raises(ArithmeticOverflow):
        checked_add(U64_MAX, 1)
    with pytest.raises(ArithmeticOverflow):
        checked_sub(1, 2)
    with pytest.raises(ArithmeticOverflow):
        checked_mul(U64_MAX, 2)
    assert checked_mul(U64_MAX, 2, "u128") == 2 * U64_MAX
    with pytest.raises(ArithmeticOverflow):
        checked_mul(U128_MAX, 2, "u128")


def test_division_floors_and_rejects_zero_divisor() -> None:
    assert checked_div(7, 2) == 3
    with pytest.raises(ArithmeticOverflow) as ei:
        checked_div(1, 0)
    assert ei.value.code == "math_overflow"


def test_narrowing_to_u64() -> None:
    assert to_u64(U64_MAX) == U64_MAX
    with pytest.raises(ArithmeticOverflow):
        to_u64(U64_MAX + 1)


def test_day_floor() -> None:
    assert day_floor(0) == 0
    assert day_floor(SECONDS_PER_DAY - 1) == 0
    assert day_floor(3 * SECONDS_PER_DAY + 5) == 3 * SECONDS_PER_DAY


@pytest.mark.parametrize(
    "period,mult,days",
    [
        (LockupPeriod.FLEX, 1, 5),
        (LockupPeriod.THREE_MONTHS, 2, 90),
        (LockupPeriod.SIX_MONTHS, 4, 180),
        (LockupPeriod.ONE_YEAR, 6, 365),
    ],
)
def test_lockup_table(period: LockupPeriod, mult: int, days: int) -> None:
    assert period.multiplier() == mult
    assert period.days() == days
    start = 10 * SECONDS_PER_DAY + 1234
    assert period.end_timestamp(start) == (10 + days) * SECONDS_PER_DAY


def test_unset_period_is_invalid() -> None:
    with pytest.raises(DomainViolation) as ei:
        LockupPeriod.NONE.end_timestamp(0)
    assert ei.value.code == "invalid_lockup_period"
    with pytest.raises(DomainViolation):
        parse_lockup_period("none")
    with pytest.raises(DomainViolation):
        parse_lockup_period("two_weeks")
    assert parse_lockup_period(" Six_Months ") is LockupPeriod.SIX_MONTHS
