"""ValidationEngine: exchanges a token for one more use.

The decrement-and-check is a single :meth:`TokenStore.atomic_update`, never
a read followed by a write: with a read-then-write, two concurrent logins
could both see ``uses_remaining == 1`` and both succeed.
"""
from __future__ import annotations

import logging

from login_token.audit import TokenAuditLogger
from login_token.errors import InternalError, InvalidTokenError, StoreError
from login_token.store.base import IdRange, TokenStore
from login_token.tokens.token import Clock, LoginToken, utc_now

logger = logging.getLogger(__name__)


class ValidationEngine:
    """Validates and atomically decrements tokens.

    Parameters
    ----------
    store:
        Backend holding the tokens.
    clock:
        Returns the current server time.
    audit:
        Optional audit trail.
    """

    def __init__(
        self,
        store: TokenStore,
        clock: Clock = utc_now,
        audit: TokenAuditLogger | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._audit = audit

    def login(self, token_id: str) -> LoginToken:
        """Validate *token_id* and record one use.

        Positive use counts drop by exactly one; unlimited (negative) counts
        are left alone. ``last_used_at`` is set either way.

        Returns
        -------
        LoginToken
            The token as it is after the update.

        Raises
        ------
        InvalidTokenError
            If the token does not exist, is dead, or is past its deadline.
        InternalError
            If the store fails or more than one row matched.
        """
        if not token_id:
            raise InvalidTokenError()

        now = self._clock()
        try:
            changes = self._store.atomic_update(
                IdRange.exact(token_id),
                lambda token: token.is_valid(now),
                lambda token: token.used(now),
            )
        except StoreError:
            logger.exception("Login update for token %s failed", token_id)
            raise InternalError() from None

        if not changes:
            raise InvalidTokenError()
        if len(changes) > 1:
            logger.error("Login for token %s matched %d rows", token_id, len(changes))
            raise InternalError()

        token = changes[0].new
        if self._audit is not None:
            self._audit.log_validated(
                token_id=token.token_id,
                owner=token.owner,
                uses_remaining=token.uses_remaining,
            )
        return token
