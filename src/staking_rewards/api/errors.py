from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from staking_rewards.ledger.errors import (
    ArithmeticOverflow,
    CapacityExceeded,
    MissingScheduleEntry,
    RewardsError,
)


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def unprocessable(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(422, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    def to_body(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}


def from_rewards_error(e: RewardsError) -> ApiError:
    """Map the ledger error taxonomy onto HTTP statuses."""
    if isinstance(e, (ArithmeticOverflow, CapacityExceeded)):
        return ApiError.unprocessable(e.code, e.reason, dict(e.details))
    if isinstance(e, MissingScheduleEntry):
        return ApiError.not_found(e.code, e.reason, dict(e.details))
    return ApiError.bad_request(e.code, e.reason, dict(e.details))
