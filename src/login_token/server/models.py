"""Pydantic envelope and response models for the login-token HTTP server."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from login_token.tokens.token import LoginToken


class RpcRequest(BaseModel):
    """Request body for POST /rpc."""

    method: str
    params: dict[str, Any] = Field(default_factory=dict)
    id: Any = None


class RpcError(BaseModel):
    """Error member of an RPC response."""

    code: int
    message: str


class TokenResponse(BaseModel):
    """Wire representation of a single token."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    user: str
    ttl: int
    deadline: str
    last_seen: Optional[str] = Field(default=None, alias="lastSeen")
    metadata: Any = None
    created_at: str = Field(alias="createdAt")

    @classmethod
    def from_token(cls, token: LoginToken) -> "TokenResponse":
        return cls.model_validate(token.to_dict())


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str = "ok"
    service: str = "login-token"
    version: str = "0.1.0"
    token_count: int = 0


class ErrorResponse(BaseModel):
    """Transport-level error body (bad JSON, missing requester, unknown route)."""

    error: str
    detail: str = ""


def rpc_result(request_id: Any, result: Any) -> dict[str, object]:
    """Build a successful RPC response body."""
    return {"id": request_id, "result": result}


def rpc_error(request_id: Any, code: int, message: str) -> dict[str, object]:
    """Build a failed RPC response body."""
    return {"id": request_id, "error": RpcError(code=code, message=message).model_dump()}


__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "RpcError",
    "RpcRequest",
    "TokenResponse",
    "rpc_error",
    "rpc_result",
]
