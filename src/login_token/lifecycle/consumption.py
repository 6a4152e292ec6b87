"""ConsumptionEngine: kills a token before its time.

Consumption is a soft delete: the row stays, with ``uses_remaining`` forced
to zero, until the sweeper removes it. It stays visible to ``list`` and
``info`` in the meantime.
"""
from __future__ import annotations

import logging

from login_token.audit import TokenAuditLogger
from login_token.errors import InternalError, InvalidTokenError, StoreError
from login_token.store.base import IdRange, TokenStore
from login_token.tokens.token import Clock, LoginToken, utc_now

logger = logging.getLogger(__name__)


class ConsumptionEngine:
    """Forces tokens dead.

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

    def consume(self, token_id: str) -> LoginToken:
        """Kill *token_id* and return its final snapshot.

        Irreversible: a second ``consume`` and any later ``login`` on the
        same id raise :class:`InvalidTokenError`.

        Raises
        ------
        InvalidTokenError
            If the token does not exist, is already dead, or has expired.
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
                lambda token: token.killed(),
            )
        except StoreError:
            logger.exception("Consume update for token %s failed", token_id)
            raise InternalError() from None

        if not changes:
            raise InvalidTokenError()
        if len(changes) > 1:
            logger.error("Consume for token %s matched %d rows", token_id, len(changes))
            raise InternalError()

        token = changes[0].new
        logger.info("Consumed token %s of %s", token.token_id, token.owner)
        if self._audit is not None:
            self._audit.log_consumed(token_id=token.token_id, owner=token.owner)
        return token
