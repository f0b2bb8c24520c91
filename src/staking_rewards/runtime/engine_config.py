# src/staking_rewards/runtime/engine_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class EngineConfig:
    pool_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # Single SQLite DB file holding the pool and its positions.
    db_path: str

    api_host: str
    api_port: int

    log_level: str

    # Persist after every committed operation.
    autopersist: bool


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_engine_config(cfg: EngineConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.pool_id, str) or not cfg.pool_id.strip():
        raise ValueError("pool_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")


def default_engine_config() -> EngineConfig:
    return EngineConfig(
        pool_id="default",
        mode="prod",
        db_path="./data/staking_rewards.db",
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
        autopersist=True,
    )


def _merge(raw: Json, d: EngineConfig) -> EngineConfig:
    return EngineConfig(
        pool_id=_as_str(raw.get("pool_id"), d.pool_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
        autopersist=_as_bool(raw.get("autopersist"), d.autopersist),
    )


def read_engine_config_file(path: str) -> EngineConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("engine config must be a JSON object")

    cfg = _merge(raw, default_engine_config())
    validate_engine_config(cfg)
    return cfg


def _env_overrides() -> Json:
    keys = {
        "pool_id": "STAKING_REWARDS_POOL_ID",
        "mode": "STAKING_REWARDS_MODE",
        "db_path": "STAKING_REWARDS_DB_PATH",
        "api_host": "STAKING_REWARDS_API_HOST",
        "api_port": "STAKING_REWARDS_API_PORT",
        "log_level": "STAKING_REWARDS_LOG_LEVEL",
        "autopersist": "STAKING_REWARDS_AUTOPERSIST",
    }
    return {field: os.environ.get(env) for field, env in keys.items()}


def load_engine_config(*, config_path: Optional[str] = None) -> EngineConfig:
    """File (if any) first, then STAKING_REWARDS_* environment overrides."""
    p = config_path or os.environ.get("STAKING_REWARDS_CONFIG_PATH")
    base = read_engine_config_file(p) if p else default_engine_config()

    cfg = _merge(_env_overrides(), base)
    validate_engine_config(cfg)
    return cfg
