#!/usr/bin/env python3
"""Example: Quickstart

Issues a one-time token, validates it, and shows that a second validation
is rejected.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install login-token
"""
from __future__ import annotations

import login_token
from login_token import (
    CreateRequest,
    InMemoryTokenStore,
    InvalidTokenError,
    StaticPermissionDelegate,
    TokenService,
)


def main() -> None:
    print(f"login-token version: {login_token.__version__}")

    # Step 1: Wire a service over an in-memory store
    permissions = StaticPermissionDelegate()
    permissions.grant("root", "acme", {"@admin": True})
    service = TokenService(InMemoryTokenStore(), permissions)

    # Step 2: Issue and use a one-time password
    otp = service.otp("acme.alice")
    token = service.login(otp)
    print(f"OTP {otp[:8]}... accepted for {token.owner}, uses left: {token.uses_remaining}")

    try:
        service.login(otp)
    except InvalidTokenError as exc:
        print(f"Second use rejected: code={exc.code} message={exc.message!r}")

    # Step 3: An admin issues a three-use token on behalf of someone else
    token_id = service.create(
        "root",
        CreateRequest(ttl=3, deadline="2099-01-01T00:00:00Z", userToImpersonate="acme.bob"),
    )
    print(f"Issued {token_id[:8]}... for acme.bob, uses left after one login: "
          f"{service.login(token_id).uses_remaining}")

    # Step 4: Sweep what can no longer be used
    print(f"Swept {service.clear()} token(s)")

    print("\nQuickstart complete.")


if __name__ == "__main__":
    main()
