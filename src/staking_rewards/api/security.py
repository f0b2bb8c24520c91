"""Request body cap for the rewards API.

Every mutating route takes a small JSON body, so anything past the cap is
answered with 413 before it reaches a route or the engine lock.

  STAKING_REWARDS_MAX_REQUEST_BYTES   cap in bytes (default 64 KiB)
  STAKING_REWARDS_SIZE_LIMIT_DISABLE  truthy to turn the cap off
"""

from __future__ import annotations

import os
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from staking_rewards.api.errors import ApiError

DEFAULT_MAX_REQUEST_BYTES = 64 * 1024

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


def _size_limit_from_env() -> Optional[int]:
    """Configured cap, or None when the cap is disabled."""
    if os.environ.get("STAKING_REWARDS_SIZE_LIMIT_DISABLE", "").strip().lower() in {"1", "true", "yes", "on"}:
        return None
    raw = os.environ.get("STAKING_REWARDS_MAX_REQUEST_BYTES", "").strip()
    return int(raw) if raw.isdigit() else DEFAULT_MAX_REQUEST_BYTES


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, max_bytes: Optional[int] = None) -> None:
        super().__init__(app)
        self._max_bytes = int(max_bytes) if max_bytes is not None else _size_limit_from_env()

    def _rejected(self, size: int) -> JSONResponse:
        err = ApiError(413, "request_too_large", "Request body too large", {"size": size, "limit": self._max_bytes})
        return JSONResponse(status_code=err.status_code, content=err.to_body())

    async def dispatch(self, request: Request, call_next):
        limit = self._max_bytes
        if limit is None or (request.method or "").upper() not in _BODY_METHODS:
            return await call_next(request)

        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > limit:
            return self._rejected(int(declared))

        # chunked uploads carry no content-length
        body = await request.body()
        if len(body) > limit:
            return self._rejected(len(body))
        return await call_next(request)
