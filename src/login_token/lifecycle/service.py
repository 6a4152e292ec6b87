"""TokenService: one object exposing the whole RPC method table.

Wires the five lifecycle engines around a single injected store and
permission delegate. Transports hold one TokenService and call its
methods; nothing in the package keeps a process-wide instance.
"""
from __future__ import annotations

import datetime

from login_token.audit import TokenAuditLogger
from login_token.config import LoginTokenSettings
from login_token.lifecycle.consumption import ConsumptionEngine
from login_token.lifecycle.issuance import OTP_LIFETIME, IssuanceEngine
from login_token.lifecycle.query import QueryEngine
from login_token.lifecycle.requests import CreateRequest, InfoRequest, ListRequest
from login_token.lifecycle.sweeper import SWEEP_INTERVAL, ExpirySweeper, PeriodicSweeper
from login_token.lifecycle.validation import ValidationEngine
from login_token.permissions.delegate import ADMIN_TAG, LIST_TAG, PermissionDelegate
from login_token.permissions.static import StaticPermissionDelegate
from login_token.store import open_store
from login_token.store.base import TokenStore
from login_token.tokens.token import Clock, LoginToken, utc_now


class TokenService:
    """Facade over the token lifecycle engines.

    Parameters
    ----------
    store:
        Token backend shared by every engine.
    permissions:
        Effective-tags resolver.
    clock:
        Server clock shared by every engine.
    otp_lifetime:
        Lifetime of ``otp`` tokens.
    admin_tag:
        Tag granting impersonation and full visibility.
    list_tag:
        Capability tag granting token-list visibility.
    audit:
        Optional audit trail shared by every engine.
    """

    def __init__(
        self,
        store: TokenStore,
        permissions: PermissionDelegate,
        clock: Clock = utc_now,
        otp_lifetime: datetime.timedelta = OTP_LIFETIME,
        admin_tag: str = ADMIN_TAG,
        list_tag: str = LIST_TAG,
        audit: TokenAuditLogger | None = None,
    ) -> None:
        self.store = store
        self.issuance = IssuanceEngine(
            store,
            permissions,
            clock=clock,
            otp_lifetime=otp_lifetime,
            admin_tag=admin_tag,
            audit=audit,
        )
        self.validation = ValidationEngine(store, clock=clock, audit=audit)
        self.consumption = ConsumptionEngine(store, clock=clock, audit=audit)
        self.query = QueryEngine(store, permissions, admin_tag=admin_tag, list_tag=list_tag)
        self.sweeper = ExpirySweeper(store, clock=clock, audit=audit)

    # ------------------------------------------------------------------
    # RPC methods
    # ------------------------------------------------------------------

    def login(self, token_id: str) -> LoginToken:
        """Validate a token and record one use."""
        return self.validation.login(token_id)

    def otp(self, requester: str) -> str:
        """Issue a one-hour, single-use token for *requester*."""
        return self.issuance.otp(requester)

    def create(self, requester: str, request: CreateRequest) -> str:
        """Issue a token with caller-chosen parameters."""
        return self.issuance.create(requester, request)

    def consume(self, token_id: str) -> LoginToken:
        """Kill a token and return its final snapshot."""
        return self.consumption.consume(token_id)

    def list(self, requester: str, request: ListRequest) -> list[LoginToken]:
        """List tokens visible to *requester*."""
        return self.query.list(requester, request)

    def info(self, requester: str, request: InfoRequest) -> list[LoginToken]:
        """Fetch tokens by id, subject to visibility checks."""
        return self.query.info(requester, request)

    def clear(self) -> int:
        """Sweep dead and expired tokens now; return the deleted count."""
        return self.sweeper.sweep()

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    def periodic_sweeper(self, interval: datetime.timedelta = SWEEP_INTERVAL) -> PeriodicSweeper:
        """Return a (not yet started) periodic sweeper bound to this service."""
        return PeriodicSweeper(self.sweeper, interval=interval)

    # ------------------------------------------------------------------
    # Construction from settings
    # ------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        settings: LoginTokenSettings,
        permissions: PermissionDelegate | None = None,
    ) -> "TokenService":
        """Build a service from :class:`~login_token.config.LoginTokenSettings`.

        The store is chosen by ``settings.db_path``. When *permissions* is
        not given, a :class:`StaticPermissionDelegate` is loaded from
        ``settings.permissions_file`` (or left empty).
        """
        if permissions is None:
            if settings.permissions_file is not None:
                permissions = StaticPermissionDelegate.from_file(settings.permissions_file)
            else:
                permissions = StaticPermissionDelegate()
        audit = (
            TokenAuditLogger(settings.audit_log_path)
            if settings.audit_log_path is not None
            else None
        )
        return cls(
            open_store(settings.db_path),
            permissions,
            otp_lifetime=settings.otp_lifetime,
            admin_tag=settings.admin_tag,
            list_tag=settings.list_tag,
            audit=audit,
        )
