"""Token lifecycle engines.

Quick start
-----------
::

    from login_token.lifecycle import TokenService
    from login_token.permissions import StaticPermissionDelegate
    from login_token.store import InMemoryTokenStore

    service = TokenService(InMemoryTokenStore(), StaticPermissionDelegate())
    token_id = service.otp("acme.alice")
    print(service.login(token_id).uses_remaining)  # 0
"""
from __future__ import annotations

from login_token.lifecycle.consumption import ConsumptionEngine
from login_token.lifecycle.issuance import IssuanceEngine
from login_token.lifecycle.query import QueryEngine
from login_token.lifecycle.requests import (
    ConsumeRequest,
    CreateRequest,
    InfoRequest,
    ListRequest,
    LoginRequest,
)
from login_token.lifecycle.service import TokenService
from login_token.lifecycle.sweeper import ExpirySweeper, PeriodicSweeper
from login_token.lifecycle.validation import ValidationEngine

__all__ = [
    "ConsumeRequest",
    "ConsumptionEngine",
    "CreateRequest",
    "ExpirySweeper",
    "InfoRequest",
    "IssuanceEngine",
    "ListRequest",
    "LoginRequest",
    "PeriodicSweeper",
    "QueryEngine",
    "TokenService",
    "ValidationEngine",
]
