"""IssuanceEngine: creates login tokens.

Two entry points:

``otp``
    Self-issued, single-use token valid for one hour.
``create``
    Caller-chosen use count, deadline and metadata, optionally owned by
    another identity when the requester holds ``@admin`` over it.

Deadlines are checked against the server clock, never against anything the
caller sends. Storage failures are logged in full and surfaced to the
caller as an opaque :class:`~login_token.errors.InternalError`.
"""
from __future__ import annotations

import datetime
import logging

from login_token.audit import TokenAuditLogger
from login_token.errors import (
    DeadlineInPastError,
    InternalError,
    PermissionDeniedError,
    StoreError,
)
from login_token.lifecycle.requests import CreateRequest
from login_token.permissions.delegate import ADMIN_TAG, PermissionDelegate
from login_token.store.base import TokenStore
from login_token.tokens.token import Clock, LoginToken, new_token_id, parse_deadline, utc_now

logger = logging.getLogger(__name__)

OTP_LIFETIME = datetime.timedelta(seconds=3600)
DEFAULT_USES = 1


class IssuanceEngine:
    """Issues new tokens into a TokenStore.

    Parameters
    ----------
    store:
        Backend the tokens are inserted into.
    permissions:
        Resolver consulted when a caller asks to impersonate someone.
    clock:
        Returns the current server time. Defaults to UTC wall clock.
    otp_lifetime:
        Lifetime of tokens issued by :meth:`otp`.
    admin_tag:
        Tag that must be set for impersonation to be allowed.
    audit:
        Optional audit trail.
    """

    def __init__(
        self,
        store: TokenStore,
        permissions: PermissionDelegate,
        clock: Clock = utc_now,
        otp_lifetime: datetime.timedelta = OTP_LIFETIME,
        admin_tag: str = ADMIN_TAG,
        audit: TokenAuditLogger | None = None,
    ) -> None:
        self._store = store
        self._permissions = permissions
        self._clock = clock
        self._otp_lifetime = otp_lifetime
        self._admin_tag = admin_tag
        self._audit = audit

    # ------------------------------------------------------------------
    # otp
    # ------------------------------------------------------------------

    def otp(self, requester: str) -> str:
        """Issue a single-use token for *requester*, valid for one hour.

        Returns
        -------
        str
            The new token id.

        Raises
        ------
        InternalError
            If the token cannot be stored.
        """
        logger.info("Creating OTP for %s", requester)
        now = self._clock()
        token = LoginToken(
            token_id=new_token_id(),
            owner=requester,
            uses_remaining=DEFAULT_USES,
            deadline=now + self._otp_lifetime,
            created_at=now,
        )
        return self._insert(token, actor=requester)

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def create(self, requester: str, request: CreateRequest) -> str:
        """Issue a token with caller-chosen parameters.

        Parameters
        ----------
        requester:
            Verified identity of the caller.
        request:
            Validated create parameters.

        Returns
        -------
        str
            The new token id.

        Raises
        ------
        DeadlineParseError
            If the deadline cannot be parsed.
        DeadlineInPastError
            If the deadline is earlier than the server clock.
        PermissionDeniedError
            If impersonation was requested without ``@admin``.
        InternalError
            If the permission lookup or the insert fails.
        """
        uses = request.ttl if request.ttl else DEFAULT_USES

        deadline = parse_deadline(request.deadline)
        now = self._clock()
        if deadline < now:
            logger.warning(
                "Rejected token for %s: deadline %s is before server time %s",
                requester,
                deadline.isoformat(),
                now.isoformat(),
            )
            raise DeadlineInPastError()

        owner = requester
        if request.user_to_impersonate:
            self._check_impersonation(requester, request.user_to_impersonate)
            owner = request.user_to_impersonate

        token = LoginToken(
            token_id=new_token_id(),
            owner=owner,
            uses_remaining=uses,
            deadline=deadline,
            metadata=request.metadata,
            created_at=now,
        )
        token_id = self._insert(token, actor=requester)
        if owner != requester:
            logger.info("Created token for %s on behalf of %s", owner, requester)
        else:
            logger.info("Created token for %s", owner)
        return token_id

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_impersonation(self, requester: str, target: str) -> None:
        try:
            tags = self._permissions.get_effective_tags(requester, target)
        except Exception:
            logger.exception("Tag lookup for %s over %s failed", requester, target)
            raise InternalError() from None

        if not tags.has(self._admin_tag):
            logger.warning("Denied impersonation of %s by %s", target, requester)
            if self._audit is not None:
                self._audit.log_impersonation_denied(requester=requester, target=target)
            raise PermissionDeniedError()

    def _insert(self, token: LoginToken, actor: str) -> str:
        try:
            token_id = self._store.insert(token)
        except StoreError:
            logger.exception("Could not store token for %s", token.owner)
            raise InternalError() from None

        if self._audit is not None:
            self._audit.log_issued(
                token_id=token_id,
                owner=token.owner,
                actor=actor,
                uses=token.uses_remaining,
                deadline=token.deadline,
            )
        return token_id
