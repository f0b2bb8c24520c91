# src/staking_rewards/runtime/engine.py
"""Transactional facade over one reward pool and its positions.

Each operation works on deep copies of the pool and of the positions it
touches. Copies replace the live records (and are persisted) only after the
whole operation succeeded, so any error leaves state exactly as it was.

The engine never authenticates callers and never moves tokens: amounts it
returns (claim, distribute) are for the host to transfer.
"""

from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from staking_rewards.ledger.errors import DomainViolation, RewardsError
from staking_rewards.ledger.lockup import LockupPeriod, parse_lockup_period
from staking_rewards.ledger.pool import RewardPool
from staking_rewards.ledger.position import StakePosition
from staking_rewards.runtime.codec import encode_pool, encode_position
from staking_rewards.runtime.engine_config import EngineConfig
from staking_rewards.runtime.event_log import log_event
from staking_rewards.runtime.metrics import inc_counter, set_gauge
from staking_rewards.runtime.sqlite_db import SqliteDB, SqliteRewardsStore

Json = Dict[str, Any]

_log = logging.getLogger("staking_rewards.engine")


def _owner(v: Any) -> str:
    s = str(v or "").strip()
    if not s:
        raise DomainViolation("invalid_position", "empty_owner")
    return s


class RewardsEngine:
    def __init__(
        self,
        *,
        pool_id: str = "default",
        pool: Optional[RewardPool] = None,
        positions: Optional[Dict[str, StakePosition]] = None,
        store: Optional[SqliteRewardsStore] = None,
        clock: Optional[Callable[[], float]] = None,
        autopersist: bool = True,
    ) -> None:
        self.pool_id = str(pool_id)
        self.pool: Optional[RewardPool] = pool
        self.positions: Dict[str, StakePosition] = dict(positions or {})
        self._store = store
        self._clock = clock or time.time
        self.autopersist = bool(autopersist)

    @classmethod
    def from_config(cls, cfg: EngineConfig, *, clock: Optional[Callable[[], float]] = None) -> "RewardsEngine":
        """Load the configured pool from SQLite, initializing it on first boot."""
        store = SqliteRewardsStore(db=SqliteDB(path=cfg.db_path), pool_id=cfg.pool_id)
        if store.exists():
            engine = cls(
                pool_id=cfg.pool_id,
                pool=store.read_pool(),
                positions=store.read_positions(),
                store=store,
                clock=clock,
                autopersist=cfg.autopersist,
            )
            log_event(_log, "pool_loaded", pool_id=cfg.pool_id, positions=len(engine.positions))
            return engine

        engine = cls(pool_id=cfg.pool_id, store=store, clock=clock, autopersist=cfg.autopersist)
        engine.initialize_pool()
        return engine

    # ----------------------------
    # Plumbing
    # ----------------------------

    def now(self) -> int:
        return int(self._clock())

    def _ts(self, now: Optional[int]) -> int:
        return self.now() if now is None else int(now)

    def _live_pool(self) -> RewardPool:
        if self.pool is None:
            raise DomainViolation("pool_not_initialized", "initialize_pool_first", {"pool_id": self.pool_id})
        return self.pool

    def _require(self, owner: str) -> StakePosition:
        p = self.positions.get(owner)
        if p is None:
            raise DomainViolation("invalid_position", "unknown_owner", {"owner": owner})
        return p

    @contextmanager
    def _tx(self, op: str, *owners: Optional[str]) -> Iterator[Tuple[RewardPool, Dict[str, StakePosition]]]:
        """Run `op` against working copies; commit only if the block completes."""
        try:
            keys = sorted({_owner(o) for o in owners if o is not None})
            pool = copy.deepcopy(self._live_pool())
            working = {k: copy.deepcopy(self._require(k)) for k in keys}
            yield pool, working
        except RewardsError as e:
            inc_counter("op_rejected_total")
            log_event(_log, "operation_rejected", pool_id=self.pool_id, op=op, code=e.code, reason=e.reason)
            raise

        self._commit(pool, working)
        inc_counter(f"op_{op}_total")

    def _commit(self, pool: RewardPool, working: Dict[str, StakePosition], removed: Tuple[str, ...] = ()) -> None:
        if self._store is not None and self.autopersist:
            self._store.save(pool, working, removed)
        self.pool = pool
        self.positions.update(working)
        for owner in removed:
            self.positions.pop(owner, None)
        set_gauge("pool_total_share", pool.total_share)
        set_gauge("positions", len(self.positions))

    def persist(self) -> None:
        """Write the full snapshot (pool + every position)."""
        if self._store is None or self.pool is None:
            return
        self._store.save(self.pool, self.positions)

    # ----------------------------
    # Read accessors
    # ----------------------------

    def pool_total_share(self) -> int:
        return self._live_pool().total_share

    def rewards_to_distribute(self, now: Optional[int] = None) -> int:
        return self._live_pool().rewards_to_distribute(self._ts(now))

    def pool_view(self) -> Json:
        v = encode_pool(self._live_pool())
        v["pool_id"] = self.pool_id
        return v

    def position_share(self, owner: str) -> int:
        return self._require(_owner(owner)).share

    def unclaimed_rewards(self, owner: str) -> int:
        return self._require(_owner(owner)).unclaimed_rewards

    def position_view(self, owner: str) -> Json:
        return encode_position(self._require(_owner(owner)))

    def has_position(self, owner: str) -> bool:
        return str(owner or "").strip() in self.positions

    # ----------------------------
    # Pool operations
    # ----------------------------

    def initialize_pool(self) -> Json:
        """Create the empty pool; a pool can only be initialized once."""
        if self.pool is not None:
            raise DomainViolation("already_initialized", "pool_exists", {"pool_id": self.pool_id})
        pool = RewardPool()
        if self._store is not None:
            self._store.save(pool, {})
        self.pool = pool
        inc_counter("op_initialize_pool_total")
        log_event(_log, "initialize_pool", pool_id=self.pool_id)
        return self.pool_view()

    def fill_vault(self, amount: int, distribution_ends_at: int, *, now: Optional[int] = None) -> Json:
        ts = self._ts(now)
        with self._tx("fill_vault") as (pool, _):
            pool.fill_vault(amount, distribution_ends_at, ts)
        log_event(
            _log,
            "fill_vault",
            pool_id=self.pool_id,
            amount=int(amount),
            distribution_ends_at=self.pool.distribution_ends_at,
            available=self.pool.tokens_available_for_distribution,
        )
        return {
            "tokens_available_for_distribution": self.pool.tokens_available_for_distribution,
            "distribution_ends_at": self.pool.distribution_ends_at,
        }

    def distribute(self, *, now: Optional[int] = None) -> Json:
        """Fold today's straight-line slice of the funded balance into the index."""
        ts = self._ts(now)
        with self._tx("distribute") as (pool, _):
            rewards = pool.rewards_to_distribute(ts)
            advanced = pool.distribute(rewards, ts)
        log_event(
            _log,
            "distribute",
            pool_id=self.pool_id,
            rewards=rewards if advanced else 0,
            advanced=advanced,
            cumulative_index=str(self.pool.cumulative_index),
            total_share=self.pool.total_share,
        )
        return {
            "advanced": advanced,
            "rewards": rewards if advanced else 0,
            "cumulative_index": str(self.pool.cumulative_index),
        }

    # ----------------------------
    # Position operations
    # ----------------------------

    def initialize_position(self, owner: str) -> Json:
        key = _owner(owner)
        pool = self._live_pool()
        if key in self.positions:
            raise DomainViolation("already_initialized", "position_exists", {"owner": key})
        position = StakePosition(owner=key)
        self._commit(pool, {key: position})
        inc_counter("op_initialize_position_total")
        log_event(_log, "initialize_position", pool_id=self.pool_id, owner=key)
        return encode_position(position)

    def deposit(
        self,
        owner: str,
        amount: int,
        period: LockupPeriod | str,
        *,
        delegate: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Json:
        ts = self._ts(now)
        with self._tx("deposit", owner, delegate) as (pool, ps):
            position = ps[_owner(owner)]
            pool.deposit(position, amount, parse_lockup_period(period), ts, _pick(ps, delegate))
        log_event(
            _log,
            "deposit",
            pool_id=self.pool_id,
            owner=owner,
            amount=int(amount),
            period=parse_lockup_period(period).value,
            delegate=delegate,
            total_share=self.pool.total_share,
        )
        return self.position_view(owner)

    def withdraw(
        self,
        owner: str,
        amount: int,
        *,
        delegate: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Json:
        ts = self._ts(now)
        with self._tx("withdraw", owner, delegate) as (pool, ps):
            pool.withdraw(ps[_owner(owner)], amount, ts, _pick(ps, delegate))
        log_event(
            _log,
            "withdraw",
            pool_id=self.pool_id,
            owner=owner,
            amount=int(amount),
            delegate=delegate,
            total_share=self.pool.total_share,
        )
        return self.position_view(owner)

    def slash(
        self,
        owner: str,
        native_amount: int,
        weighted_amount: int,
        *,
        expiry: Optional[int] = None,
        now: Optional[int] = None,
    ) -> Json:
        ts = self._ts(now)
        with self._tx("slash", owner) as (pool, ps):
            pool.slash(ps[_owner(owner)], native_amount, weighted_amount, expiry, ts)
        log_event(
            _log,
            "slash",
            pool_id=self.pool_id,
            owner=owner,
            native_amount=int(native_amount),
            weighted_amount=int(weighted_amount),
            expiry=expiry,
        )
        return self.position_view(owner)

    def decrease_rewards(self, owner: str, decrease: int) -> Json:
        with self._tx("decrease_rewards", owner) as (pool, ps):
            pool.decrease_rewards(ps[_owner(owner)], decrease)
        log_event(_log, "decrease_rewards", pool_id=self.pool_id, owner=owner, decrease=int(decrease))
        return self.position_view(owner)

    def extend_stake(
        self,
        owner: str,
        old_period: LockupPeriod | str,
        new_period: LockupPeriod | str,
        old_start: int,
        base_amount: int,
        extra_amount: int = 0,
        *,
        delegate: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Json:
        ts = self._ts(now)
        with self._tx("extend_stake", owner, delegate) as (pool, ps):
            pool.extend_stake(
                ps[_owner(owner)],
                parse_lockup_period(old_period),
                parse_lockup_period(new_period),
                old_start,
                base_amount,
                extra_amount,
                ts,
                _pick(ps, delegate),
            )
        log_event(
            _log,
            "extend_stake",
            pool_id=self.pool_id,
            owner=owner,
            old_period=parse_lockup_period(old_period).value,
            new_period=parse_lockup_period(new_period).value,
            base_amount=int(base_amount),
            extra_amount=int(extra_amount),
            delegate=delegate,
        )
        return self.position_view(owner)

    def change_delegate(
        self,
        owner: str,
        staked_amount: int,
        *,
        old_delegate: Optional[str] = None,
        new_delegate: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Json:
        ts = self._ts(now)
        with self._tx("change_delegate", owner, old_delegate, new_delegate) as (pool, ps):
            pool.change_delegate(
                ps[_owner(owner)],
                staked_amount,
                ts,
                _pick(ps, old_delegate),
                _pick(ps, new_delegate),
            )
        log_event(
            _log,
            "change_delegate",
            pool_id=self.pool_id,
            owner=owner,
            staked_amount=int(staked_amount),
            old_delegate=old_delegate,
            new_delegate=new_delegate,
        )
        return self.position_view(owner)

    def claim(self, owner: str, *, now: Optional[int] = None) -> int:
        """Settle and zero the unclaimed balance; the host transfers the result."""
        ts = self._ts(now)
        with self._tx("claim", owner) as (pool, ps):
            amount = pool.claim(ps[_owner(owner)], ts)
        log_event(_log, "claim", pool_id=self.pool_id, owner=owner, amount=amount)
        return amount

    def close_position(self, owner: str, *, now: Optional[int] = None) -> None:
        key = _owner(owner)
        ts = self._ts(now)
        try:
            pool = copy.deepcopy(self._live_pool())
            position = copy.deepcopy(self._require(key))
            pool.close_position(position, ts)
        except RewardsError as e:
            inc_counter("op_rejected_total")
            log_event(_log, "operation_rejected", pool_id=self.pool_id, op="close_position", code=e.code, reason=e.reason)
            raise
        self._commit(pool, {}, removed=(key,))
        inc_counter("op_close_position_total")
        log_event(_log, "close_position", pool_id=self.pool_id, owner=key)


def _pick(ps: Dict[str, StakePosition], owner: Optional[str]) -> Optional[StakePosition]:
    if owner is None:
        return None
    return ps[_owner(owner)]
