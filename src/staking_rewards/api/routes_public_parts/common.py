from __future__ import annotations

import threading
from typing import Any, Dict

from fastapi import Request

from staking_rewards.api.errors import ApiError
from staking_rewards.runtime.engine import RewardsEngine

Json = Dict[str, Any]


def _engine(request: Request) -> RewardsEngine:
    eng = getattr(request.app.state, "engine", None)
    if eng is None:
        raise ApiError.internal("not_ready", "engine not attached to app.state", {})
    return eng


def _lock(request: Request) -> threading.Lock:
    """Engine calls are serialized here; the engine itself holds no locks."""
    return request.app.state.engine_lock


def _require_position(eng: RewardsEngine, owner: str) -> None:
    if not eng.has_position(owner):
        raise ApiError.not_found("position_not_found", "no position for owner", {"owner": owner})
