from __future__ import annotations

from fastapi import APIRouter

from staking_rewards.api.routes_public_parts.health import router as health_router
from staking_rewards.api.routes_public_parts.metrics import router as metrics_router
from staking_rewards.api.routes_public_parts.pool import router as pool_router
from staking_rewards.api.routes_public_parts.positions import router as positions_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(pool_router, prefix="/v1", tags=["pool"])
public_router.include_router(positions_router, prefix="/v1", tags=["positions"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
