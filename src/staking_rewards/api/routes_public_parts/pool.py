from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from staking_rewards.api.routes_public_parts.common import Json, _engine, _lock
from staking_rewards.api.schemas import DistributeRequest, FillVaultRequest

router = APIRouter()


@router.get("/pool")
def pool_get(request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        return {"ok": True, "pool": eng.pool_view()}


@router.post("/pool")
def pool_initialize(request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        return {"ok": True, "pool": eng.initialize_pool()}


@router.get("/pool/rewards_to_distribute")
def pool_rewards_to_distribute(request: Request, now: Optional[int] = None) -> Json:
    """Amount the next distribute call would fold into the index."""
    eng = _engine(request)
    with _lock(request):
        return {"ok": True, "rewards_to_distribute": eng.rewards_to_distribute(now)}


@router.post("/pool/fill_vault")
def pool_fill_vault(body: FillVaultRequest, request: Request) -> Json:
    eng = _engine(request)
    with _lock(request):
        out = eng.fill_vault(body.amount, body.distribution_ends_at, now=body.now)
    return {"ok": True, **out}


@router.post("/pool/distribute")
def pool_distribute(request: Request, body: Optional[DistributeRequest] = None) -> Json:
    now = body.now if body is not None else None
    eng = _engine(request)
    with _lock(request):
        out = eng.distribute(now=now)
    return {"ok": True, **out}
