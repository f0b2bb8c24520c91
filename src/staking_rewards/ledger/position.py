# src/staking_rewards/ledger/position.py
"""Per-participant accrual state.

A position is settled lazily: nothing happens to it until an operation touches
it, at which point `refresh_rewards` replays every decay that came due since the
last touch, one settlement per decay day, then settles up to "now".
"""

from __future__ import annotations

from dataclasses import dataclass, field

from staking_rewards.ledger.checked import (
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
    day_floor,
    to_u64,
)
from staking_rewards.ledger.constants import POSITION_DECAYS_CAPACITY, PRECISION
from staking_rewards.ledger.errors import DomainViolation, decrease_too_large
from staking_rewards.ledger.timeline import OrderedTimeline


def _position_decays() -> OrderedTimeline:
    return OrderedTimeline(POSITION_DECAYS_CAPACITY, width="u64")


@dataclass
class StakePosition:
    owner: str
    share: int = 0
    unclaimed_rewards: int = 0
    stake_from_others: int = 0
    last_synced_index: int = 0
    local_decays: OrderedTimeline = field(default_factory=_position_decays)

    @property
    def weight(self) -> int:
        """Earning power: own weighted stake plus stake delegated in."""
        return checked_add(self.share, self.stake_from_others)

    def refresh_rewards(self, index_history: OrderedTimeline, now: int) -> None:
        day = day_floor(now)
        weight = self.weight

        for decay_day, amount in self.local_decays.consume_up_to(day):
            self._update_index(index_history, decay_day, weight)
            weight = checked_sub(weight, amount)

        self._update_index(index_history, now, weight)
        self.share = checked_sub(weight, self.stake_from_others)

    def _update_index(self, index_history: OrderedTimeline, at: int, weight: int) -> None:
        # Strict floor: the index recorded for `at`'s own day is not visible here.
        idx = index_history.floor_strict(at)
        if idx is None:
            idx = 0

        delta = checked_sub(idx, self.last_synced_index, "u128")
        reward = to_u64(checked_div(checked_mul(delta, weight, "u128"), PRECISION, "u128"))
        if reward > 0:
            self.unclaimed_rewards = checked_add(self.unclaimed_rewards, reward)

        self.last_synced_index = idx

    def decrease_rewards(self, decrease: int) -> None:
        """Penalize earning power without touching the pool's total share.

        The same amount is absorbed by the decay schedule, farthest date first,
        so a future decay never removes more than the position still holds.
        """
        remaining = int(decrease)
        if remaining == 0:
            return
        if remaining > self.share:
            raise decrease_too_large(remaining, self.share)

        self.share = checked_sub(self.share, remaining)

        for decay_day, amount in self.local_decays.items_reversed():
            if amount >= remaining:
                self.local_decays.set(decay_day, amount - remaining)
                break
            remaining -= amount
            self.local_decays.set(decay_day, 0)

    def claim(self) -> int:
        amount = self.unclaimed_rewards
        self.unclaimed_rewards = 0
        return amount

    def ensure_closable(self) -> None:
        if self.stake_from_others > 0:
            raise DomainViolation(
                "stake_from_others_must_be_zero",
                "delegated_stake_outstanding",
                {"owner": self.owner, "stake_from_others": self.stake_from_others},
            )
        if self.unclaimed_rewards != 0:
            raise DomainViolation(
                "rewards_must_be_claimed",
                "unclaimed_rewards_outstanding",
                {"owner": self.owner, "unclaimed_rewards": self.unclaimed_rewards},
            )
        if self.share != 0:
            raise DomainViolation(
                "stake_must_be_withdrawn",
                "weighted_stake_outstanding",
                {"owner": self.owner, "share": self.share},
            )

