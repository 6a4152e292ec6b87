"""Tests for login_token.lifecycle.issuance: otp and create."""
from __future__ import annotations

import datetime
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest

from login_token.audit import TokenAuditLogger
from login_token.errors import (
    DeadlineInPastError,
    DeadlineParseError,
    InternalError,
    PermissionDeniedError,
    PermissionLookupError,
    StoreError,
)
from login_token.lifecycle.issuance import IssuanceEngine
from login_token.lifecycle.requests import CreateRequest
from login_token.permissions import ADMIN_TAG, LIST_TAG, StaticPermissionDelegate
from login_token.store import InMemoryTokenStore

if TYPE_CHECKING:
    from conftest import MutableClock


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture()
def permissions() -> StaticPermissionDelegate:
    delegate = StaticPermissionDelegate()
    delegate.grant("root", "acme", {ADMIN_TAG: True})
    delegate.grant("lister", "acme", {LIST_TAG: True})
    return delegate


@pytest.fixture()
def audit() -> TokenAuditLogger:
    return TokenAuditLogger()


@pytest.fixture()
def engine(
    store: InMemoryTokenStore,
    permissions: StaticPermissionDelegate,
    clock: MutableClock,
    audit: TokenAuditLogger,
) -> IssuanceEngine:
    return IssuanceEngine(store, permissions, clock=clock, audit=audit)


def _future(clock: MutableClock, **kwargs: float) -> str:
    return (clock.now + datetime.timedelta(**kwargs)).isoformat()


# ---------------------------------------------------------------------------
# otp
# ---------------------------------------------------------------------------


class TestOtp:
    def test_returns_stored_id(self, engine: IssuanceEngine, store: InMemoryTokenStore) -> None:
        token_id = engine.otp("acme.alice")
        assert token_id in store

    def test_single_use_one_hour(
        self, engine: IssuanceEngine, store: InMemoryTokenStore, clock: MutableClock
    ) -> None:
        token = store.get(engine.otp("acme.alice"))
        assert token is not None
        assert token.owner == "acme.alice"
        assert token.uses_remaining == 1
        assert token.deadline == clock.now + datetime.timedelta(hours=1)
        assert token.last_used_at is None

    def test_custom_lifetime(
        self,
        store: InMemoryTokenStore,
        permissions: StaticPermissionDelegate,
        clock: MutableClock,
    ) -> None:
        engine = IssuanceEngine(
            store, permissions, clock=clock, otp_lifetime=datetime.timedelta(minutes=5)
        )
        token = store.get(engine.otp("acme.alice"))
        assert token.deadline == clock.now + datetime.timedelta(minutes=5)  # type: ignore[union-attr]

    def test_ids_are_unique(self, engine: IssuanceEngine) -> None:
        assert engine.otp("acme.alice") != engine.otp("acme.alice")

    def test_store_failure_is_opaque(
        self, permissions: StaticPermissionDelegate, clock: MutableClock
    ) -> None:
        store = MagicMock()
        store.insert.side_effect = StoreError("disk full at /var/lib/secret")
        engine = IssuanceEngine(store, permissions, clock=clock)
        with pytest.raises(InternalError) as exc_info:
            engine.otp("acme.alice")
        assert exc_info.value.message == "Internal error"
        assert "secret" not in str(exc_info.value)

    def test_audit_records_issue(self, engine: IssuanceEngine, audit: TokenAuditLogger) -> None:
        token_id = engine.otp("acme.alice")
        event = audit.read_log()[0]
        assert event["event_type"] == "token_issued"
        assert event["details"]["token_id"] == token_id


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    def test_explicit_uses_and_metadata(
        self, engine: IssuanceEngine, store: InMemoryTokenStore, clock: MutableClock
    ) -> None:
        request = CreateRequest(ttl=3, deadline=_future(clock, days=1), metadata={"device": "cli"})
        token = store.get(engine.create("acme.alice", request))
        assert token is not None
        assert token.owner == "acme.alice"
        assert token.uses_remaining == 3
        assert token.metadata == {"device": "cli"}
        assert token.deadline == clock.now + datetime.timedelta(days=1)

    @pytest.mark.parametrize("ttl", [None, 0])
    def test_missing_or_zero_ttl_means_one_use(
        self,
        engine: IssuanceEngine,
        store: InMemoryTokenStore,
        clock: MutableClock,
        ttl: int | None,
    ) -> None:
        token = store.get(engine.create("acme.alice", CreateRequest(ttl=ttl, deadline=_future(clock, hours=1))))
        assert token.uses_remaining == 1  # type: ignore[union-attr]

    def test_negative_ttl_is_unlimited(
        self, engine: IssuanceEngine, store: InMemoryTokenStore, clock: MutableClock
    ) -> None:
        token = store.get(engine.create("acme.alice", CreateRequest(ttl=-1, deadline=_future(clock, hours=1))))
        assert token.is_unlimited  # type: ignore[union-attr]

    def test_unix_deadline(
        self, engine: IssuanceEngine, store: InMemoryTokenStore, clock: MutableClock
    ) -> None:
        deadline = clock.now + datetime.timedelta(hours=2)
        token = store.get(engine.create("acme.alice", CreateRequest(deadline=deadline.timestamp())))
        assert token.deadline == deadline  # type: ignore[union-attr]

    def test_deadline_equal_to_now_is_accepted(
        self, engine: IssuanceEngine, clock: MutableClock
    ) -> None:
        assert engine.create("acme.alice", CreateRequest(deadline=clock.now.isoformat()))

    @pytest.mark.parametrize("ttl", [None, 1, 5, -1])
    def test_past_deadline_rejected_whatever_ttl(
        self,
        engine: IssuanceEngine,
        store: InMemoryTokenStore,
        clock: MutableClock,
        ttl: int | None,
    ) -> None:
        request = CreateRequest(ttl=ttl, deadline=_future(clock, seconds=-1))
        with pytest.raises(DeadlineInPastError):
            engine.create("acme.alice", request)
        assert store.count() == 0

    def test_unparsable_deadline(self, engine: IssuanceEngine, store: InMemoryTokenStore) -> None:
        with pytest.raises(DeadlineParseError):
            engine.create("acme.alice", CreateRequest(deadline="next tuesday"))
        assert store.count() == 0

    def test_null_deadline(self, engine: IssuanceEngine) -> None:
        with pytest.raises(DeadlineParseError):
            engine.create("acme.alice", CreateRequest(deadline=None))


# ---------------------------------------------------------------------------
# create with impersonation
# ---------------------------------------------------------------------------


class TestCreateImpersonation:
    def test_admin_may_impersonate(
        self, engine: IssuanceEngine, store: InMemoryTokenStore, clock: MutableClock
    ) -> None:
        request = CreateRequest(deadline=_future(clock, hours=1), userToImpersonate="acme.bob")
        token = store.get(engine.create("root", request))
        assert token.owner == "acme.bob"  # type: ignore[union-attr]

    def test_audit_records_actor(
        self, engine: IssuanceEngine, audit: TokenAuditLogger, clock: MutableClock
    ) -> None:
        request = CreateRequest(deadline=_future(clock, hours=1), userToImpersonate="acme.bob")
        engine.create("root", request)
        event = audit.read_log()[0]
        assert event["actor"] == "root"
        assert event["owner"] == "acme.bob"

    @pytest.mark.parametrize("requester", ["lister", "acme.alice", "stranger"])
    def test_without_admin_denied(
        self,
        engine: IssuanceEngine,
        store: InMemoryTokenStore,
        audit: TokenAuditLogger,
        clock: MutableClock,
        requester: str,
    ) -> None:
        request = CreateRequest(deadline=_future(clock, hours=1), userToImpersonate="acme.bob")
        with pytest.raises(PermissionDeniedError):
            engine.create(requester, request)
        assert store.count() == 0
        assert audit.read_log()[-1]["event_type"] == "impersonation_denied"

    def test_admin_outside_scope_denied(
        self, engine: IssuanceEngine, clock: MutableClock
    ) -> None:
        request = CreateRequest(deadline=_future(clock, hours=1), userToImpersonate="globex.bob")
        with pytest.raises(PermissionDeniedError):
            engine.create("root", request)

    def test_empty_target_means_self(
        self, engine: IssuanceEngine, store: InMemoryTokenStore, clock: MutableClock
    ) -> None:
        request = CreateRequest(deadline=_future(clock, hours=1), userToImpersonate="")
        token = store.get(engine.create("acme.alice", request))
        assert token.owner == "acme.alice"  # type: ignore[union-attr]

    def test_lookup_failure_is_internal(
        self, store: InMemoryTokenStore, clock: MutableClock
    ) -> None:
        permissions = MagicMock()
        permissions.get_effective_tags.side_effect = PermissionLookupError("resolver down")
        engine = IssuanceEngine(store, permissions, clock=clock)
        request = CreateRequest(deadline=_future(clock, hours=1), userToImpersonate="acme.bob")
        with pytest.raises(InternalError):
            engine.create("root", request)
        assert store.count() == 0

    def test_deadline_checked_before_permissions(
        self, store: InMemoryTokenStore, clock: MutableClock
    ) -> None:
        permissions = MagicMock()
        engine = IssuanceEngine(store, permissions, clock=clock)
        request = CreateRequest(deadline=_future(clock, hours=-1), userToImpersonate="acme.bob")
        with pytest.raises(DeadlineInPastError):
            engine.create("root", request)
        permissions.get_effective_tags.assert_not_called()
