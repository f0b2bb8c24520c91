from __future__ import annotations

import pytest

from staking_rewards.ledger.constants import PRECISION, SECONDS_PER_DAY
from staking_rewards.ledger.lockup import LockupPeriod
from staking_rewards.ledger.pool import RewardPool
from staking_rewards.ledger.position import StakePosition
from staking_rewards.runtime.codec import (
    StateDecodeError,
    decode_pool,
    decode_position,
    dumps_json,
    encode_pool,
    encode_position,
    loads_json,
)

DAY = SECONDS_PER_DAY
T0 = 19_675 * DAY


def _live_state():
    pool = RewardPool()
    a, b = StakePosition(owner="alice"), StakePosition(owner="bob")
    pool.deposit(a, 10**12, LockupPeriod.ONE_YEAR, T0, delegate=b)
    pool.deposit(b, 7, LockupPeriod.THREE_MONTHS, T0)
    pool.fill_vault(3 * 10**12, T0 + 30 * DAY, T0)
    pool.distribute(pool.rewards_to_distribute(T0), T0)
    pool.refresh(a, T0 + DAY)
    return pool, a, b


def test_live_state_survives_storage_encoding() -> None:
    pool, a, b = _live_state()

    raw = loads_json(dumps_json(encode_pool(pool)))
    assert isinstance(raw["cumulative_index"], str)
    assert decode_pool(raw) == pool

    for p in (a, b):
        assert decode_position(loads_json(dumps_json(encode_position(p)))) == p


def test_u128_index_values_are_strings() -> None:
    pool = RewardPool(cumulative_index=5 * PRECISION * 10**6)
    pool.index_history.set(T0, pool.cumulative_index)
    enc = encode_pool(pool)
    assert enc["index_history"] == [[T0, str(5 * PRECISION * 10**6)]]


def test_decode_rejects_unordered_timeline() -> None:
    raw = encode_position(StakePosition(owner="alice"))
    raw["local_decays"] = [[2 * DAY, 1], [1 * DAY, 1]]
    with pytest.raises(StateDecodeError) as ei:
        decode_position(raw)
    assert ei.value.code == "unordered_timeline"


def test_decode_rejects_oversized_timeline() -> None:
    raw = encode_position(StakePosition(owner="alice"))
    raw["local_decays"] = [[d * DAY, 1] for d in range(51)]
    with pytest.raises(StateDecodeError) as ei:
        decode_position(raw)
    assert ei.value.code == "timeline_capacity_exceeded"


@pytest.mark.parametrize(
    "field,value,code",
    [
        ("share", True, "invalid_int_field"),
        ("share", -1, "int_out_of_range"),
        ("share", 2**64, "int_out_of_range"),
        ("last_synced_index", "12x", "invalid_int_field"),
        ("last_synced_index", "12²", "invalid_int_field"),
        ("last_synced_index", "٣", "invalid_int_field"),
        ("version", 2, "unsupported_version"),
        ("owner", "", "invalid_owner"),
    ],
)
def test_decode_rejects_bad_fields(field: str, value, code: str) -> None:
    raw = encode_position(StakePosition(owner="alice"))
    raw[field] = value
    with pytest.raises(StateDecodeError) as ei:
        decode_position(raw)
    assert ei.value.code == code


def test_loads_json_rejects_garbage() -> None:
    with pytest.raises(StateDecodeError) as ei:
        loads_json(b"{not json")
    assert ei.value.code == "invalid_json"
