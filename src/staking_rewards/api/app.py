from __future__ import annotations

import logging
import os
import threading
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from staking_rewards.api.errors import ApiError, from_rewards_error
from staking_rewards.api.routes_public import public_router
from staking_rewards.api.security import RequestSizeLimitMiddleware
from staking_rewards.ledger.errors import RewardsError
from staking_rewards.runtime.engine import RewardsEngine
from staking_rewards.runtime.engine_config import load_engine_config
from staking_rewards.runtime.event_log import log_event

_log = logging.getLogger("staking_rewards.api")


def build_engine() -> RewardsEngine:
    """Build the engine for API runtime.

    This wrapper exists so tests can monkeypatch `staking_rewards.api.app.build_engine`
    without reaching into runtime modules.
    """
    return RewardsEngine.from_config(load_engine_config())


def _parse_cors_origins() -> List[str]:
    """Parse CORS origins with production-safe defaults.

    Policy:
      - If STAKING_REWARDS_CORS_ORIGINS is unset/empty -> CORS disabled
      - Wildcard "*" is rejected in STAKING_REWARDS_MODE=prod
    """
    raw = os.environ.get("STAKING_REWARDS_CORS_ORIGINS", "").strip()
    mode = os.environ.get("STAKING_REWARDS_MODE", "prod").strip().lower()

    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]

    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in STAKING_REWARDS_CORS_ORIGINS."
            )
        return ["*"]

    return origins


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RewardsError)
    async def _rewards_error(request: Request, exc: RewardsError) -> JSONResponse:
        err = from_rewards_error(exc)
        return JSONResponse(status_code=err.status_code, content=err.to_body())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        err = ApiError.bad_request("bad_request", "request validation failed", {"errors": exc.errors()})
        return JSONResponse(status_code=err.status_code, content=jsonable_encoder(err.to_body()))


def create_app(*, engine: Optional[RewardsEngine] = None, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    engine:
      - attached as-is when given (tests, embedding hosts)
    boot_runtime:
      - True (default): load engine config and open the SQLite-backed engine
      - False: no engine unless one was passed in
    """
    mode = os.environ.get("STAKING_REWARDS_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="Staking Rewards API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Staking Rewards API")

    if engine is not None:
        app.state.engine = engine
    elif boot_runtime:
        app.state.engine = build_engine()
    else:
        app.state.engine = None
    app.state.engine_lock = threading.Lock()

    # --- Middleware ---
    app.add_middleware(RequestSizeLimitMiddleware)

    cors_origins = _parse_cors_origins()
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    _install_error_handlers(app)

    # --- Routers ---
    app.include_router(public_router)

    log_event(_log, "api_created", mode=mode, engine=app.state.engine is not None)
    return app
