from __future__ import annotations

import pytest

from staking_rewards.ledger.constants import PRECISION, SECONDS_PER_DAY
from staking_rewards.ledger.errors import DomainViolation
from staking_rewards.ledger.position import StakePosition
from staking_rewards.ledger.timeline import OrderedTimeline

DAY = SECONDS_PER_DAY


def _position_with_decays() -> StakePosition:
    p = StakePosition(owner="alice", share=3600)
    p.local_decays.set(180 * DAY, 700)
    p.local_decays.set(365 * DAY, 1500)
    return p


def test_decrease_rewards_absorbs_farthest_decay_first() -> None:
    p = _position_with_decays()
    p.decrease_rewards(300)
    assert p.share == 3300
    assert p.local_decays.items() == [(180 * DAY, 700), (365 * DAY, 1200)]


def test_decrease_rewards_spills_into_earlier_decays() -> None:
    p = _position_with_decays()
    p.decrease_rewards(2200)
    assert p.share == 1400
    assert p.local_decays.items() == [(180 * DAY, 0), (365 * DAY, 0)]


def test_decrease_rewards_larger_than_all_decays_clamps_them_to_zero() -> None:
    p = _position_with_decays()
    p.decrease_rewards(3500)
    assert p.share == 100
    assert p.local_decays.items() == [(180 * DAY, 0), (365 * DAY, 0)]


def test_decrease_rewards_rejects_more_than_share() -> None:
    p = _position_with_decays()
    with pytest.raises(DomainViolation) as ei:
        p.decrease_rewards(3601)
    assert ei.value.code == "decrease_too_large"
    assert p.share == 3600


def test_decrease_rewards_zero_is_noop() -> None:
    p = _position_with_decays()
    p.decrease_rewards(0)
    assert p.share == 3600
    assert p.local_decays.items() == [(180 * DAY, 700), (365 * DAY, 1500)]


def test_refresh_settles_decayed_weight_before_the_decay_day() -> None:
    # weight 300 until day 2, then 100 (decay of 200 due on day 2)
    history = OrderedTimeline(16, width="u128")
    history.set(1 * DAY, PRECISION)  # +1 per unit on day 1
    history.set(2 * DAY, 3 * PRECISION)  # +2 per unit on day 2

    p = StakePosition(owner="bob", share=300)
    p.local_decays.set(2 * DAY, 200)

    p.refresh_rewards(history, 3 * DAY)

    # day 1 index accrues at 300, day 2 index only at the post-decay 100
    assert p.unclaimed_rewards == 300 + 200
    assert p.share == 100
    assert p.last_synced_index == 3 * PRECISION
    assert len(p.local_decays) == 0


def test_refresh_is_idempotent_at_the_same_instant() -> None:
    history = OrderedTimeline(16, width="u128")
    history.set(1 * DAY, PRECISION)
    p = StakePosition(owner="carol", share=50, stake_from_others=50)

    p.refresh_rewards(history, 2 * DAY)
    p.refresh_rewards(history, 2 * DAY)

    assert p.unclaimed_rewards == 100
    assert p.share == 50


def test_close_checks() -> None:
    p = StakePosition(owner="dave", stake_from_others=1)
    with pytest.raises(DomainViolation) as ei:
        p.ensure_closable()
    assert ei.value.code == "stake_from_others_must_be_zero"

    p = StakePosition(owner="dave", unclaimed_rewards=1)
    with pytest.raises(DomainViolation) as ei:
        p.ensure_closable()
    assert ei.value.code == "rewards_must_be_claimed"

    p = StakePosition(owner="dave", share=1)
    with pytest.raises(DomainViolation) as ei:
        p.ensure_closable()
    assert ei.value.code == "stake_must_be_withdrawn"

    StakePosition(owner="dave").ensure_closable()
