from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from staking_rewards.api.routes_public_parts.common import Json, _engine, _lock, _require_position
from staking_rewards.api.schemas import (
    ChangeDelegateRequest,
    ClaimRequest,
    CloseRequest,
    DecreaseRewardsRequest,
    DepositRequest,
    ExtendStakeRequest,
    InitializePositionRequest,
    SlashRequest,
    WithdrawRequest,
)

router = APIRouter()


@router.post("/positions")
def position_initialize(body: InitializePositionRequest, request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        return {"ok": True, "position": eng.initialize_position(body.owner)}


@router.get("/positions/{owner}")
def position_get(owner: str, request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        _require_position(eng, owner)
        return {"ok": True, "position": eng.position_view(owner)}


@router.post("/positions/{owner}/deposit")
def position_deposit(owner: str, body: DepositRequest, request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        _require_position(eng, owner)
        view = eng.deposit(owner, body.amount, body.period, delegate=body.delegate, now=body.now)
    return {"ok": True, "position": view}


@router.post("/positions/{owner}/withdraw")
def position_withdraw(owner: str, body: WithdrawRequest, request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        _require_position(eng, owner)
        view = eng.withdraw(owner, body.amount, delegate=body.delegate, now=body.now)
    return {"ok": True, "position": view}


@router.post("/positions/{owner}/extend")
def position_extend(owner: str, body: ExtendStakeRequest, request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        _require_position(eng, owner)
        view = eng.extend_stake(
            owner,
            body.old_period,
            body.new_period,
            body.old_start,
            body.base_amount,
            body.extra_amount,
            delegate=body.delegate,
            now=body.now,
        )
    return {"ok": True, "position": view}


@router.post("/positions/{owner}/slash")
def position_slash(owner: str, body: SlashRequest, request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        _require_position(eng, owner)
        view = eng.slash(owner, body.native_amount, body.weighted_amount, expiry=body.expiry, now=body.now)
    return {"ok": True, "position": view}


@router.post("/positions/{owner}/decrease_rewards")
def position_decrease_rewards(owner: str, body: DecreaseRewardsRequest, request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        _require_position(eng, owner)
        view = eng.decrease_rewards(owner, body.decrease)
    return {"ok": True, "position": view}


@router.post("/positions/{owner}/change_delegate")
def position_change_delegate(owner: str, body: ChangeDelegateRequest, request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        _require_position(eng, owner)
        view = eng.change_delegate(
            owner,
            body.staked_amount,
            old_delegate=body.old_delegate,
            new_delegate=body.new_delegate,
            now=body.now,
        )
    return {"ok": True, "position": view}


@router.post("/positions/{owner}/claim")
def position_claim(owner: str, request: Request, body: Optional[ClaimRequest] = None) -> Json:
    """Zero the unclaimed balance; the host pays out `amount`."""
    now = body.now if body is not None else None
    eng = _engine(request)
    with _lock(request):
        _require_position(eng, owner)
        amount = eng.claim(owner, now=now)
    return {"ok": True, "owner": owner, "amount": amount}


@router.post("/positions/{owner}/close")
def position_close(owner: str, request: Request, body: Optional[CloseRequest] = None) -> Json:
    now = body.now if body is not None else None
    eng = _engine(request)
    with _lock(request):
        _require_position(eng, owner)
        eng.close_position(owner, now=now)
    return {"ok": True, "owner": owner, "closed": True}
