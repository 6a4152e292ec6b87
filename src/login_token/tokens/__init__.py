"""Login token state model.

Quick start
-----------
::

    import datetime
    from login_token.tokens import LoginToken, new_token_id

    now = datetime.datetime.now(datetime.timezone.utc)
    token = LoginToken(
        token_id=new_token_id(),
        owner="acme.alice",
        uses_remaining=1,
        deadline=now + datetime.timedelta(hours=1),
    )
    print(token.is_valid(now))  # True
"""
from __future__ import annotations

from login_token.tokens.token import (
    Clock,
    LoginToken,
    new_token_id,
    owner_within,
    parse_deadline,
    utc_now,
)

__all__ = [
    "Clock",
    "LoginToken",
    "new_token_id",
    "owner_within",
    "parse_deadline",
    "utc_now",
]
