"""login-token: issue, validate, consume and expire short-lived login tokens.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import login_token
>>> login_token.__version__
'0.1.0'

Quick start
-----------
::

    from login_token import (
        TokenService, InMemoryTokenStore, StaticPermissionDelegate,
        CreateRequest, InvalidTokenError,
    )

    permissions = StaticPermissionDelegate()
    permissions.grant("root", "acme", {"@admin": True})

    service = TokenService(InMemoryTokenStore(), permissions)
    token_id = service.create(
        "root",
        CreateRequest(ttl=3, deadline="2030-01-01T00:00:00Z", userToImpersonate="acme.bob"),
    )
    print(service.login(token_id).uses_remaining)  # 2
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Token model
# ------------------------------------------------------------------
from login_token.tokens.token import LoginToken, owner_within, parse_deadline

# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------
from login_token.errors import (
    DeadlineInPastError,
    DeadlineParseError,
    InternalError,
    InvalidParamsError,
    InvalidTokenError,
    PermissionDeniedError,
    PermissionLookupError,
    StoreError,
    TokenServiceError,
)

# ------------------------------------------------------------------
# Storage
# ------------------------------------------------------------------
from login_token.store import (
    IdRange,
    InMemoryTokenStore,
    SQLiteTokenStore,
    TokenChange,
    TokenStore,
    open_store,
)

# ------------------------------------------------------------------
# Permissions
# ------------------------------------------------------------------
from login_token.permissions import EffectiveTags, PermissionDelegate, StaticPermissionDelegate

# ------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------
from login_token.audit import AuditEvent, TokenAuditLogger
from login_token.lifecycle import (
    ConsumeRequest,
    CreateRequest,
    ExpirySweeper,
    InfoRequest,
    ListRequest,
    LoginRequest,
    PeriodicSweeper,
    TokenService,
)

__all__ = [
    # version
    "__version__",
    # token model
    "LoginToken",
    "owner_within",
    "parse_deadline",
    # errors
    "DeadlineInPastError",
    "DeadlineParseError",
    "InternalError",
    "InvalidParamsError",
    "InvalidTokenError",
    "PermissionDeniedError",
    "PermissionLookupError",
    "StoreError",
    "TokenServiceError",
    # storage
    "IdRange",
    "InMemoryTokenStore",
    "SQLiteTokenStore",
    "TokenChange",
    "TokenStore",
    "open_store",
    # permissions
    "EffectiveTags",
    "PermissionDelegate",
    "StaticPermissionDelegate",
    # lifecycle
    "AuditEvent",
    "ConsumeRequest",
    "CreateRequest",
    "ExpirySweeper",
    "InfoRequest",
    "ListRequest",
    "LoginRequest",
    "PeriodicSweeper",
    "TokenAuditLogger",
    "TokenService",
]
