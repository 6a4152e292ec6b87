"""Test that the quickstart API works for login-token."""
from __future__ import annotations


def test_quickstart_import() -> None:
    import login_token

    assert login_token.__version__ == "0.1.0"


def test_quickstart_otp_login() -> None:
    from login_token import InMemoryTokenStore, StaticPermissionDelegate, TokenService

    service = TokenService(InMemoryTokenStore(), StaticPermissionDelegate())
    token_id = service.otp("acme.alice")
    assert service.login(token_id).uses_remaining == 0


def test_quickstart_impersonation() -> None:
    from login_token import (
        CreateRequest,
        InMemoryTokenStore,
        StaticPermissionDelegate,
        TokenService,
    )

    permissions = StaticPermissionDelegate()
    permissions.grant("root", "acme", {"@admin": True})
    service = TokenService(InMemoryTokenStore(), permissions)
    token_id = service.create(
        "root",
        CreateRequest(ttl=3, deadline="2099-01-01T00:00:00Z", userToImpersonate="acme.bob"),
    )
    token = service.login(token_id)
    assert token.owner == "acme.bob"
    assert token.uses_remaining == 2


def test_quickstart_errors_carry_codes() -> None:
    import pytest

    from login_token import InMemoryTokenStore, InvalidTokenError, StaticPermissionDelegate, TokenService

    service = TokenService(InMemoryTokenStore(), StaticPermissionDelegate())
    with pytest.raises(InvalidTokenError) as exc_info:
        service.login("missing")
    assert exc_info.value.to_dict() == {"code": 2, "message": "Invalid token"}
