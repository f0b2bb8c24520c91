# src/staking_rewards/ledger/pool.py
"""Global accrual ledger and the stake-changing operations.

The pool never iterates over positions. Each distribution advances one
cumulative index (reward per unit of weighted stake, scaled by PRECISION) and
records it under the day it happened; positions settle against that history
whenever they are touched.

Every operation that changes a position's weight refreshes that position
first. A delegate is refreshed exactly once per operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from staking_rewards.ledger.checked import (
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
    day_floor,
    to_u64,
)
from staking_rewards.ledger.constants import (
    INDEX_HISTORY_CAPACITY,
    POOL_DECAYS_CAPACITY,
    PRECISION,
    SECONDS_PER_DAY,
)
from staking_rewards.ledger.errors import (
    delegates_identical,
    distribution_in_the_past,
    no_deposits,
    no_modifiers_at_date,
    rewards_must_be_greater_than_zero,
)
from staking_rewards.ledger.lockup import LockupPeriod, parse_lockup_period
from staking_rewards.ledger.position import StakePosition
from staking_rewards.ledger.timeline import OrderedTimeline


def _pool_decays() -> OrderedTimeline:
    return OrderedTimeline(POOL_DECAYS_CAPACITY, width="u64")


def _index_history() -> OrderedTimeline:
    return OrderedTimeline(INDEX_HISTORY_CAPACITY, width="u128")


def _distinct(position: StakePosition, delegate: Optional[StakePosition]) -> Optional[StakePosition]:
    """A delegate that is the acting position itself counts as no delegate."""
    if delegate is None or delegate is position or delegate.owner == position.owner:
        return None
    return delegate


@dataclass
class RewardPool:
    total_share: int = 0
    cumulative_index: int = 0
    tokens_available_for_distribution: int = 0
    distribution_ends_at: int = 0
    scheduled_decays: OrderedTimeline = field(default_factory=_pool_decays)
    index_history: OrderedTimeline = field(default_factory=_index_history)

    # ----------------------------
    # Funding / distribution
    # ----------------------------

    def consume_scheduled_decays(self, now: int) -> None:
        total = self.total_share
        for _, amount in self.scheduled_decays.consume_up_to(day_floor(now)):
            total = checked_sub(total, amount)
        self.total_share = total

    def distribute(self, rewards_added: int, now: int) -> bool:
        """Fold `rewards_added` into the cumulative index for today.

        Returns False when today's index was already recorded (no-op).
        """
        if self.total_share == 0:
            raise no_deposits()

        day = day_floor(now)
        self.consume_scheduled_decays(now)
        if day in self.index_history:
            return False

        delta = checked_div(checked_mul(PRECISION, rewards_added, "u128"), self.total_share, "u128")
        latest = checked_add(self.cumulative_index, delta, "u128")

        self.index_history.set(day, latest)
        self.cumulative_index = latest
        self.tokens_available_for_distribution = checked_sub(self.tokens_available_for_distribution, rewards_added)
        return True

    def rewards_to_distribute(self, now: int) -> int:
        """Straight-line daily amount over what is left of the window.

        Recomputed from the current balance on every call, so a late top-up is
        spread over the remaining days only.
        """
        remaining = max(int(self.distribution_ends_at) - int(now), 0)
        days_left = remaining // SECONDS_PER_DAY
        if days_left == 0:
            return self.tokens_available_for_distribution

        scaled = checked_mul(self.tokens_available_for_distribution, PRECISION, "u128")
        return to_u64(checked_div(checked_div(scaled, days_left, "u128"), PRECISION, "u128"))

    def fill_vault(self, amount: int, distribution_ends_at: int, now: int) -> None:
        if int(amount) == 0:
            raise rewards_must_be_greater_than_zero()

        ends_day = day_floor(distribution_ends_at)
        if ends_day < day_floor(now):
            raise distribution_in_the_past(int(distribution_ends_at), int(now))

        shift = checked_sub(ends_day, self.distribution_ends_at)
        self.distribution_ends_at = checked_add(self.distribution_ends_at, shift)
        self.tokens_available_for_distribution = checked_add(self.tokens_available_for_distribution, amount)

    # ----------------------------
    # Position operations
    # ----------------------------

    def refresh(self, position: StakePosition, now: int) -> None:
        position.refresh_rewards(self.index_history, now)

    def deposit(
        self,
        position: StakePosition,
        amount: int,
        period: LockupPeriod,
        now: int,
        delegate: Optional[StakePosition] = None,
    ) -> None:
        period = parse_lockup_period(period)
        self.refresh(position, now)

        weighted = checked_mul(amount, period.multiplier())
        # Only the bonus above the flex baseline expires.
        decay = checked_sub(weighted, checked_mul(amount, LockupPeriod.FLEX.multiplier()))

        self.total_share = checked_add(self.total_share, weighted)
        position.share = checked_add(position.share, weighted)

        expiry = period.end_timestamp(now)
        self.scheduled_decays.insert_or_add(expiry, decay)
        position.local_decays.insert_or_add(expiry, decay)

        delegate = _distinct(position, delegate)
        if delegate is not None:
            self.refresh(delegate, now)
            delegate.stake_from_others = checked_add(delegate.stake_from_others, amount)
            self.total_share = checked_add(self.total_share, amount)

    def withdraw(
        self,
        position: StakePosition,
        amount: int,
        now: int,
        delegate: Optional[StakePosition] = None,
    ) -> None:
        self.refresh(position, now)

        self.total_share = checked_sub(self.total_share, amount)
        position.share = checked_sub(position.share, amount)
        self.consume_scheduled_decays(now)

        delegate = _distinct(position, delegate)
        if delegate is not None:
            self.refresh(delegate, now)
            delegate.stake_from_others = checked_sub(delegate.stake_from_others, amount)
            self.total_share = checked_sub(self.total_share, amount)

    def slash(
        self,
        position: StakePosition,
        native_amount: int,
        weighted_amount: int,
        expiry: Optional[int],
        now: int,
    ) -> None:
        self.withdraw(position, weighted_amount, now, None)
        if expiry is None:
            return

        day = day_floor(expiry)
        diff = checked_sub(weighted_amount, native_amount)
        if position.local_decays.subtract(day, diff) is None:
            raise no_modifiers_at_date(day)
        if self.scheduled_decays.subtract(day, diff) is None:
            raise no_modifiers_at_date(day)

    def decrease_rewards(self, position: StakePosition, decrease: int) -> None:
        position.decrease_rewards(decrease)

    def extend_stake(
        self,
        position: StakePosition,
        old_period: LockupPeriod,
        new_period: LockupPeriod,
        old_start: int,
        base_amount: int,
        extra_amount: int,
        now: int,
        delegate: Optional[StakePosition] = None,
    ) -> None:
        """Restake `base_amount` (+ `extra_amount`) as a fresh deposit under `new_period`.

        Whatever is still outstanding of the old commitment is unwound first:
        the full old weight and its pending decay while the lockup is active,
        only the flex baseline once it has expired.
        """
        old_period = parse_lockup_period(old_period)
        new_period = parse_lockup_period(new_period)
        self.refresh(position, now)

        old_expiry = 0 if old_period is LockupPeriod.FLEX else old_period.end_timestamp(old_start)
        flex_equiv = checked_mul(base_amount, LockupPeriod.FLEX.multiplier())

        if int(now) < old_expiry:
            old_weighted = checked_mul(base_amount, old_period.multiplier())
            diff = checked_sub(old_weighted, flex_equiv)
            if position.local_decays.subtract(old_expiry, diff) is None:
                raise no_modifiers_at_date(old_expiry)
            if self.scheduled_decays.subtract(old_expiry, diff) is None:
                raise no_modifiers_at_date(old_expiry)
            position.share = checked_sub(position.share, old_weighted)
            self.total_share = checked_sub(self.total_share, old_weighted)
        else:
            position.share = checked_sub(position.share, flex_equiv)
            self.total_share = checked_sub(self.total_share, flex_equiv)

        delegate = _distinct(position, delegate)
        if delegate is not None:
            self.refresh(delegate, now)
            delegate.stake_from_others = checked_sub(delegate.stake_from_others, base_amount)
            self.total_share = checked_sub(self.total_share, base_amount)

        # The delegate is settled at its pre-change weight; deposit refreshing
        # it again at the same `now` is a no-op.
        self.deposit(position, checked_add(base_amount, extra_amount), new_period, now, delegate)

    def change_delegate(
        self,
        position: StakePosition,
        staked_amount: int,
        now: int,
        old_delegate: Optional[StakePosition] = None,
        new_delegate: Optional[StakePosition] = None,
    ) -> None:
        old_owner = old_delegate.owner if old_delegate is not None else position.owner
        new_owner = new_delegate.owner if new_delegate is not None else position.owner
        if old_owner == new_owner:
            raise delegates_identical()

        self.refresh(position, now)

        old_delegate = _distinct(position, old_delegate)
        if old_delegate is not None:
            self.refresh(old_delegate, now)
            old_delegate.stake_from_others = checked_sub(old_delegate.stake_from_others, staked_amount)
            self.total_share = checked_sub(self.total_share, staked_amount)

        new_delegate = _distinct(position, new_delegate)
        if new_delegate is not None:
            self.refresh(new_delegate, now)
            new_delegate.stake_from_others = checked_add(new_delegate.stake_from_others, staked_amount)
            self.total_share = checked_add(self.total_share, staked_amount)

    def claim(self, position: StakePosition, now: int) -> int:
        self.refresh(position, now)
        return position.claim()

    def close_position(self, position: StakePosition, now: int) -> None:
        self.refresh(position, now)
        position.ensure_closable()

