"""RPC dispatch for the login-token server.

Each handler accepts the service, the verified requester and the raw params
mapping, validates the params into the method's request model and returns
a JSON-ready result. :func:`handle_rpc` wraps dispatch in the RPC envelope
and maps every failure to an ``{"code", "message"}`` error; it never
raises for per-request failures.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import ValidationError

from login_token import __version__
from login_token.errors import InternalError, TokenServiceError
from login_token.lifecycle.requests import (
    ConsumeRequest,
    CreateRequest,
    InfoRequest,
    ListRequest,
    LoginRequest,
)
from login_token.lifecycle.service import TokenService
from login_token.server.models import (
    ErrorResponse,
    HealthResponse,
    RpcRequest,
    TokenResponse,
    rpc_error,
    rpc_result,
)
from login_token.tokens.token import LoginToken

logger = logging.getLogger(__name__)

# JSON-RPC 2.0 reserved codes for envelope-level failures
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INVALID_REQUEST = -32600

Handler = Callable[[TokenService, str, dict[str, Any]], Any]


def _token(token: LoginToken) -> dict[str, object]:
    return TokenResponse.from_token(token).model_dump(by_alias=True)


# ------------------------------------------------------------------
# Method handlers
# ------------------------------------------------------------------


def _login(service: TokenService, requester: str, params: dict[str, Any]) -> Any:
    request = LoginRequest.model_validate(params)
    return _token(service.login(request.token))


def _otp(service: TokenService, requester: str, params: dict[str, Any]) -> Any:
    return service.otp(requester)


def _create(service: TokenService, requester: str, params: dict[str, Any]) -> Any:
    request = CreateRequest.model_validate(params)
    return service.create(requester, request)


def _consume(service: TokenService, requester: str, params: dict[str, Any]) -> Any:
    request = ConsumeRequest.model_validate(params)
    return _token(service.consume(request.token))


def _list(service: TokenService, requester: str, params: dict[str, Any]) -> Any:
    request = ListRequest.model_validate(params)
    return [_token(t) for t in service.list(requester, request)]


def _info(service: TokenService, requester: str, params: dict[str, Any]) -> Any:
    request = InfoRequest.model_validate(params)
    return [_token(t) for t in service.info(requester, request)]


def _clear(service: TokenService, requester: str, params: dict[str, Any]) -> Any:
    return service.clear()


METHODS: dict[str, Handler] = {
    "login": _login,
    "otp": _otp,
    "create": _create,
    "consume": _consume,
    "list": _list,
    "info": _info,
    "clear": _clear,
}


# ------------------------------------------------------------------
# Entry points
# ------------------------------------------------------------------


def handle_rpc(
    service: TokenService,
    requester: str,
    body: dict[str, object],
) -> tuple[int, dict[str, object]]:
    """Handle POST /rpc.

    Parameters
    ----------
    service:
        Service the call is dispatched to.
    requester:
        Identity the transport verified for this call.
    body:
        Parsed JSON request body.

    Returns
    -------
    tuple[int, dict[str, object]]
        HTTP status code and response dictionary.
    """
    try:
        envelope = RpcRequest.model_validate(body)
    except ValidationError as exc:
        return 200, rpc_error(None, INVALID_REQUEST, f"Invalid request: {exc.error_count()} error(s)")

    handler = METHODS.get(envelope.method)
    if handler is None:
        return 200, rpc_error(envelope.id, METHOD_NOT_FOUND, f"Method not found: {envelope.method}")

    try:
        result = handler(service, requester, envelope.params)
    except ValidationError as exc:
        logger.debug("Rejected %s params from %s: %s", envelope.method, requester, exc)
        return 200, rpc_error(envelope.id, INVALID_PARAMS, "Invalid params")
    except TokenServiceError as exc:
        return 200, rpc_error(envelope.id, exc.code, exc.message)
    except Exception:
        logger.exception("Unhandled failure in %s for %s", envelope.method, requester)
        error = InternalError()
        return 200, rpc_error(envelope.id, error.code, error.message)

    return 200, rpc_result(envelope.id, result)


def handle_health(service: TokenService) -> tuple[int, dict[str, object]]:
    """Handle GET /health."""
    try:
        count = service.store.count()
    except Exception:
        logger.exception("Health check could not count tokens")
        return 503, ErrorResponse(error="Unavailable", detail="Token store unreachable").model_dump()
    return 200, HealthResponse(version=__version__, token_count=count).model_dump()


__all__ = [
    "METHODS",
    "handle_health",
    "handle_rpc",
]
