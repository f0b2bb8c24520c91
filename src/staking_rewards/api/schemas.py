"""Pydantic request schemas for the public API.

Amounts are plain non-negative ints; the ledger enforces the u64 bound.
Every mutating body may carry `now` (unix seconds) to pin the operation's
clock; otherwise the engine clock is used.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class _Timed(BaseModel):
    now: Optional[int] = Field(default=None, ge=0, description="Unix seconds; defaults to the engine clock")

    model_config = {"extra": "forbid"}


class FillVaultRequest(_Timed):
    amount: int = Field(..., ge=0)
    distribution_ends_at: int = Field(..., ge=0, description="Unix seconds; floored to its day")


class DistributeRequest(_Timed):
    pass


class InitializePositionRequest(BaseModel):
    owner: str = Field(..., min_length=1, description="Owner id")

    model_config = {"extra": "forbid"}


class DepositRequest(_Timed):
    amount: int = Field(..., ge=0)
    period: str = Field(..., description="flex | three_months | six_months | one_year")
    delegate: Optional[str] = Field(default=None)


class WithdrawRequest(_Timed):
    amount: int = Field(..., ge=0, description="Weighted amount")
    delegate: Optional[str] = Field(default=None)


class SlashRequest(_Timed):
    native_amount: int = Field(..., ge=0)
    weighted_amount: int = Field(..., ge=0)
    expiry: Optional[int] = Field(default=None, ge=0, description="Lockup end of the slashed stake")


class DecreaseRewardsRequest(BaseModel):
    decrease: int = Field(..., ge=0)

    model_config = {"extra": "forbid"}


class ExtendStakeRequest(_Timed):
    old_period: str
    new_period: str
    old_start: int = Field(..., ge=0)
    base_amount: int = Field(..., ge=0)
    extra_amount: int = Field(default=0, ge=0)
    delegate: Optional[str] = Field(default=None)


class ChangeDelegateRequest(_Timed):
    staked_amount: int = Field(..., ge=0)
    old_delegate: Optional[str] = Field(default=None)
    new_delegate: Optional[str] = Field(default=None)


class ClaimRequest(_Timed):
    pass


class CloseRequest(_Timed):
    pass
