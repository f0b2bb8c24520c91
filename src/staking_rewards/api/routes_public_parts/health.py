from __future__ import annotations

import time

from fastapi import APIRouter, Request

from staking_rewards.api.routes_public_parts.common import Json

router = APIRouter()


@router.get("/health")
def health(request: Request) -> Json:
    """Liveness plus a cheap view of what the engine holds."""
    eng = getattr(request.app.state, "engine", None)
    out: Json = {"ok": True, "ts_ms": int(time.time() * 1000), "engine": eng is not None}
    if eng is not None:
        out["pool_id"] = eng.pool_id
        out["pool_initialized"] = eng.pool is not None
        out["positions"] = len(eng.positions)
    return out
