from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

Json = Dict[str, Any]


@dataclass
class RewardsError(RuntimeError):
    """Canonical error type for accrual operations.

    Every failure aborts the whole operation; callers never observe partial state.
    """

    code: str
    reason: str
    details: Json = field(default_factory=dict)

    def __str__(self) -> str:
        if not self.details:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class ArithmeticOverflow(RewardsError):
    pass


class DomainViolation(RewardsError):
    pass


class MissingScheduleEntry(RewardsError):
    pass


class CapacityExceeded(RewardsError):
    pass


def math_overflow(op: str, a: int, b: int, width: str) -> ArithmeticOverflow:
    return ArithmeticOverflow("math_overflow", f"{width}_{op}", {"a": str(a), "b": str(b)})


def no_deposits() -> DomainViolation:
    return DomainViolation("no_deposits", "total_share_is_zero")


def distribution_in_the_past(ends_at: int, now: int) -> DomainViolation:
    return DomainViolation("distribution_in_the_past", "ends_before_today", {"ends_at": ends_at, "now": now})


def rewards_must_be_greater_than_zero() -> DomainViolation:
    return DomainViolation("rewards_must_be_greater_than_zero", "zero_amount")


def decrease_too_large(decrease: int, share: int) -> DomainViolation:
    return DomainViolation("decrease_too_large", "decrease_exceeds_share", {"decrease": decrease, "share": share})


def delegates_identical() -> DomainViolation:
    return DomainViolation("delegates_identical", "old_and_new_delegate_are_the_same")


def invalid_lockup_period(period: Any) -> DomainViolation:
    return DomainViolation("invalid_lockup_period", "unset_or_unknown_period", {"period": str(period)})


def no_modifiers_at_date(day: int) -> MissingScheduleEntry:
    return MissingScheduleEntry("no_weighted_stake_modifiers_at_a_date", "missing_schedule_entry", {"day": day})


def capacity_exceeded(capacity: int, day: int) -> CapacityExceeded:
    return CapacityExceeded("timeline_capacity_exceeded", "timeline_full", {"capacity": capacity, "day": day})


__all__ = [
    "RewardsError",
    "ArithmeticOverflow",
    "DomainViolation",
    "MissingScheduleEntry",
    "CapacityExceeded",
]
