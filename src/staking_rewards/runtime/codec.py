# src/staking_rewards/runtime/codec.py
"""Canonical encoding of pools and positions at the storage boundary.

Aggregates live in memory as plain objects; persistence is an explicit
encode/decode step. u128 quantities are written as decimal strings so that
any JSON reader keeps them exact. Timelines are ordered [day, value] pairs.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from staking_rewards.ledger.constants import (
    INDEX_HISTORY_CAPACITY,
    POOL_DECAYS_CAPACITY,
    POSITION_DECAYS_CAPACITY,
    U64_MAX,
    U128_MAX,
)
from staking_rewards.ledger.errors import RewardsError
from staking_rewards.ledger.pool import RewardPool
from staking_rewards.ledger.position import StakePosition
from staking_rewards.ledger.timeline import OrderedTimeline

Json = Dict[str, Any]

STATE_FORMAT_VERSION = 1


class StateDecodeError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


class StateEncodeError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


def dumps_json(obj: Any) -> str:
    try:
        return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except Exception as e:
        raise StateEncodeError("encode_failed", f"encode failed: {e}") from e


def loads_json(data: bytes | str) -> Any:
    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise StateDecodeError("invalid_json", f"invalid json: {e}") from e
    except UnicodeDecodeError as e:
        raise StateDecodeError("invalid_utf8", f"invalid utf-8: {e}") from e


def _coerce_uint(v: Any, field: str, bound: int) -> int:
    if isinstance(v, bool):
        raise StateDecodeError("invalid_int_field", f"Invalid int field '{field}': bool not allowed")
    if isinstance(v, str):
        s = v.strip()
        if not (s.isascii() and s.isdigit()):
            raise StateDecodeError("invalid_int_field", f"Invalid int field '{field}': {v!r}")
        v = int(s)
    if not isinstance(v, int):
        raise StateDecodeError(
            "invalid_int_field", f"Invalid int field '{field}': expected int, got {type(v).__name__}"
        )
    if v < 0 or v > bound:
        raise StateDecodeError("int_out_of_range", f"Int field '{field}' out of range: {v}")
    return v


def _require_dict(v: Any, field: str) -> Json:
    if not isinstance(v, dict):
        raise StateDecodeError("invalid_object", f"Field '{field}' must be an object")
    return v


def _encode_timeline(t: OrderedTimeline) -> List[List[Any]]:
    if t.width == "u128":
        return [[day, str(value)] for day, value in t.items()]
    return [[day, value] for day, value in t.items()]


def _decode_timeline(raw: Any, field: str, capacity: int, width: str) -> OrderedTimeline:
    if raw is None:
        raw = []
    if not isinstance(raw, list):
        raise StateDecodeError("invalid_timeline", f"Field '{field}' must be a list of [day, value]")

    bound = U128_MAX if width == "u128" else U64_MAX
    t = OrderedTimeline(capacity, width=width)
    prev = -1
    for i, pair in enumerate(raw):
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise StateDecodeError("invalid_timeline", f"Field '{field}[{i}]' must be [day, value]")
        day = _coerce_uint(pair[0], f"{field}[{i}].day", U64_MAX)
        value = _coerce_uint(pair[1], f"{field}[{i}].value", bound)
        if day <= prev:
            raise StateDecodeError("unordered_timeline", f"Field '{field}' keys must be strictly ascending")
        prev = day
        try:
            t.set(day, value)
        except RewardsError as e:
            raise StateDecodeError(e.code, f"Field '{field}': {e}") from e
    return t


def encode_pool(pool: RewardPool) -> Json:
    return {
        "version": STATE_FORMAT_VERSION,
        "total_share": pool.total_share,
        "cumulative_index": str(pool.cumulative_index),
        "tokens_available_for_distribution": pool.tokens_available_for_distribution,
        "distribution_ends_at": pool.distribution_ends_at,
        "scheduled_decays": _encode_timeline(pool.scheduled_decays),
        "index_history": _encode_timeline(pool.index_history),
    }


def decode_pool(raw: Any) -> RewardPool:
    d = _require_dict(raw, "pool")
    _check_version(d)
    return RewardPool(
        total_share=_coerce_uint(d.get("total_share", 0), "total_share", U64_MAX),
        cumulative_index=_coerce_uint(d.get("cumulative_index", 0), "cumulative_index", U128_MAX),
        tokens_available_for_distribution=_coerce_uint(
            d.get("tokens_available_for_distribution", 0), "tokens_available_for_distribution", U64_MAX
        ),
        distribution_ends_at=_coerce_uint(d.get("distribution_ends_at", 0), "distribution_ends_at", U64_MAX),
        scheduled_decays=_decode_timeline(d.get("scheduled_decays"), "scheduled_decays", POOL_DECAYS_CAPACITY, "u64"),
        index_history=_decode_timeline(d.get("index_history"), "index_history", INDEX_HISTORY_CAPACITY, "u128"),
    )


def encode_position(position: StakePosition) -> Json:
    return {
        "version": STATE_FORMAT_VERSION,
        "owner": position.owner,
        "share": position.share,
        "unclaimed_rewards": position.unclaimed_rewards,
        "stake_from_others": position.stake_from_others,
        "last_synced_index": str(position.last_synced_index),
        "local_decays": _encode_timeline(position.local_decays),
    }


def decode_position(raw: Any) -> StakePosition:
    d = _require_dict(raw, "position")
    _check_version(d)
    owner = d.get("owner")
    if not isinstance(owner, str) or not owner.strip():
        raise StateDecodeError("invalid_owner", "Field 'owner' must be a non-empty string")
    return StakePosition(
        owner=owner,
        share=_coerce_uint(d.get("share", 0), "share", U64_MAX),
        unclaimed_rewards=_coerce_uint(d.get("unclaimed_rewards", 0), "unclaimed_rewards", U64_MAX),
        stake_from_others=_coerce_uint(d.get("stake_from_others", 0), "stake_from_others", U64_MAX),
        last_synced_index=_coerce_uint(d.get("last_synced_index", 0), "last_synced_index", U128_MAX),
        local_decays=_decode_timeline(d.get("local_decays"), "local_decays", POSITION_DECAYS_CAPACITY, "u64"),
    )


def _check_version(d: Json) -> None:
    v = d.get("version", STATE_FORMAT_VERSION)
    if v != STATE_FORMAT_VERSION:
        raise StateDecodeError("unsupported_version", f"Unsupported state format version: {v!r}")
