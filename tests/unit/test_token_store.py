"""Tests for login_token.store: contract shared by every TokenStore backend."""
from __future__ import annotations

import datetime
from pathlib import Path
from typing import Iterator

import pytest

from login_token.errors import StoreError
from login_token.store import (
    IdRange,
    InMemoryTokenStore,
    SQLiteTokenStore,
    TokenStore,
    open_store,
)
from login_token.tokens.token import LoginToken

UTC = datetime.timezone.utc
NOW = datetime.datetime(2030, 1, 1, 12, 0, 0, tzinfo=UTC)


def _token(token_id: str, owner: str = "acme.alice", uses: int = 1, **kwargs: object) -> LoginToken:
    return LoginToken(
        token_id=token_id,
        owner=owner,
        uses_remaining=uses,
        deadline=kwargs.pop("deadline", NOW),  # type: ignore[arg-type]
        created_at=NOW,
        **kwargs,  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[TokenStore]:
    backend: TokenStore
    if request.param == "memory":
        backend = InMemoryTokenStore()
    else:
        backend = SQLiteTokenStore(tmp_path / "tokens.db")
    yield backend
    backend.close()


# ---------------------------------------------------------------------------
# IdRange
# ---------------------------------------------------------------------------


class TestIdRange:
    def test_exact_contains_only_itself(self) -> None:
        rng = IdRange.exact("abc")
        assert rng.contains("abc")
        assert not rng.contains("abcd")
        assert not rng.contains("ab")

    def test_prefix_contains_extensions(self) -> None:
        rng = IdRange.prefix("abc")
        assert rng.contains("abc")
        assert rng.contains("abcd")
        assert not rng.contains("abd")


# ---------------------------------------------------------------------------
# insert / get
# ---------------------------------------------------------------------------


class TestInsertAndGet:
    def test_insert_returns_id(self, store: TokenStore) -> None:
        assert store.insert(_token("t1")) == "t1"

    def test_get_returns_inserted_token(self, store: TokenStore) -> None:
        token = _token("t1", metadata={"device": "laptop"}, last_used_at=NOW)
        store.insert(token)
        assert store.get("t1") == token

    def test_get_missing_returns_none(self, store: TokenStore) -> None:
        assert store.get("nope") is None

    def test_duplicate_insert_raises(self, store: TokenStore) -> None:
        store.insert(_token("t1"))
        with pytest.raises(StoreError):
            store.insert(_token("t1"))

    def test_get_many_skips_missing(self, store: TokenStore) -> None:
        store.insert(_token("t1"))
        store.insert(_token("t2"))
        found = store.get_many(["t2", "missing", "t1"])
        assert sorted(t.token_id for t in found) == ["t1", "t2"]

    def test_get_many_empty(self, store: TokenStore) -> None:
        assert store.get_many([]) == []

    def test_count(self, store: TokenStore) -> None:
        assert store.count() == 0
        store.insert(_token("t1"))
        store.insert(_token("t2"))
        assert store.count() == 2


# ---------------------------------------------------------------------------
# atomic_update
# ---------------------------------------------------------------------------


class TestAtomicUpdate:
    def test_matching_row_is_rewritten(self, store: TokenStore) -> None:
        store.insert(_token("t1", uses=3))
        changes = store.atomic_update(
            IdRange.exact("t1"),
            lambda t: t.uses_remaining > 0,
            lambda t: t.used(NOW),
        )
        assert len(changes) == 1
        assert changes[0].old.uses_remaining == 3
        assert changes[0].new.uses_remaining == 2
        assert store.get("t1").uses_remaining == 2  # type: ignore[union-attr]

    def test_predicate_failure_leaves_row(self, store: TokenStore) -> None:
        store.insert(_token("t1", uses=0))
        changes = store.atomic_update(
            IdRange.exact("t1"),
            lambda t: t.uses_remaining != 0,
            lambda t: t.used(NOW),
        )
        assert changes == []
        assert store.get("t1").uses_remaining == 0  # type: ignore[union-attr]

    def test_rows_outside_range_are_untouched(self, store: TokenStore) -> None:
        store.insert(_token("t1"))
        store.insert(_token("t10"))
        changes = store.atomic_update(IdRange.exact("t1"), lambda t: True, lambda t: t.killed())
        assert [c.new.token_id for c in changes] == ["t1"]
        assert store.get("t10").uses_remaining == 1  # type: ignore[union-attr]

    def test_prefix_range_touches_every_extension(self, store: TokenStore) -> None:
        store.insert(_token("t1"))
        store.insert(_token("t10"))
        store.insert(_token("u1"))
        changes = store.atomic_update(IdRange.prefix("t1"), lambda t: True, lambda t: t.killed())
        assert sorted(c.new.token_id for c in changes) == ["t1", "t10"]

    def test_transform_changing_id_raises(self, store: TokenStore) -> None:
        store.insert(_token("t1"))
        from dataclasses import replace

        with pytest.raises(StoreError):
            store.atomic_update(
                IdRange.exact("t1"),
                lambda t: True,
                lambda t: replace(t, token_id="other"),
            )
        assert store.get("t1") is not None
        assert store.get("other") is None

    def test_missing_id_yields_no_changes(self, store: TokenStore) -> None:
        assert store.atomic_update(IdRange.exact("x"), lambda t: True, lambda t: t) == []

    def test_exact_range_only_evaluates_its_row(self, store: TokenStore) -> None:
        for token_id in ("t0", "t1", "t10", "t2"):
            store.insert(_token(token_id, uses=2))
        seen: list[str] = []

        def predicate(token: LoginToken) -> bool:
            seen.append(token.token_id)
            return True

        changes = store.atomic_update(IdRange.exact("t1"), predicate, lambda t: t.used(NOW))
        assert seen == ["t1"]
        assert [c.new.uses_remaining for c in changes] == [1]

    def test_failed_transform_leaves_every_row(self, store: TokenStore) -> None:
        store.insert(_token("t1", uses=2))
        store.insert(_token("t2", uses=2))

        def transform(token: LoginToken) -> LoginToken:
            if token.token_id == "t2":
                raise RuntimeError("boom")
            return token.used(NOW)

        with pytest.raises(RuntimeError):
            store.atomic_update(IdRange.prefix("t"), lambda t: True, transform)
        assert store.get("t1").uses_remaining == 2  # type: ignore[union-attr]
        assert store.get("t2").uses_remaining == 2  # type: ignore[union-attr]

    def test_id_change_on_later_row_leaves_earlier_rows(self, store: TokenStore) -> None:
        from dataclasses import replace

        store.insert(_token("t1", uses=2))
        store.insert(_token("t2", uses=2))

        def transform(token: LoginToken) -> LoginToken:
            if token.token_id == "t2":
                return replace(token, token_id="t3")
            return token.used(NOW)

        with pytest.raises(StoreError):
            store.atomic_update(IdRange.prefix("t"), lambda t: True, transform)
        assert store.get("t1").uses_remaining == 2  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# delete / delete_where / list_where
# ---------------------------------------------------------------------------


class TestDeleteAndList:
    def test_delete_returns_last_value(self, store: TokenStore) -> None:
        token = _token("t1")
        store.insert(token)
        assert store.delete("t1") == token
        assert store.get("t1") is None

    def test_delete_missing_returns_none(self, store: TokenStore) -> None:
        assert store.delete("missing") is None

    def test_delete_where_removes_matches_only(self, store: TokenStore) -> None:
        store.insert(_token("dead", uses=0))
        store.insert(_token("alive", uses=2))
        removed = store.delete_where(lambda t: t.is_dead)
        assert [t.token_id for t in removed] == ["dead"]
        assert store.count() == 1

    def test_delete_where_is_idempotent(self, store: TokenStore) -> None:
        store.insert(_token("dead", uses=0))
        store.delete_where(lambda t: t.is_dead)
        assert store.delete_where(lambda t: t.is_dead) == []

    def test_list_where_filters(self, store: TokenStore) -> None:
        store.insert(_token("a", owner="alice"))
        store.insert(_token("b", owner="bob"))
        found = store.list_where(lambda t: t.owner == "bob")
        assert [t.token_id for t in found] == ["b"]


# ---------------------------------------------------------------------------
# Backend specifics
# ---------------------------------------------------------------------------


class TestInMemoryTokenStore:
    def test_len_and_contains(self) -> None:
        store = InMemoryTokenStore()
        store.insert(_token("t1"))
        assert len(store) == 1
        assert "t1" in store
        assert "t2" not in store


class TestSQLiteTokenStore:
    def test_tokens_survive_reopen(self, tmp_path: Path) -> None:
        db = tmp_path / "tokens.db"
        first = SQLiteTokenStore(db)
        first.insert(_token("t1", uses=-1, metadata={"a": [1, 2]}))
        first.close()

        second = SQLiteTokenStore(db)
        restored = second.get("t1")
        second.close()
        assert restored is not None
        assert restored.uses_remaining == -1
        assert restored.metadata == {"a": [1, 2]}
        assert restored.deadline == NOW

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db = tmp_path / "nested" / "dir" / "tokens.db"
        store = SQLiteTokenStore(db)
        store.close()
        assert db.exists()

    def test_unserializable_metadata_raises_store_error(self, tmp_path: Path) -> None:
        store = SQLiteTokenStore(tmp_path / "tokens.db")
        with pytest.raises(StoreError):
            store.insert(_token("t1", metadata=object()))
        store.close()

    def test_in_memory_database(self) -> None:
        store = SQLiteTokenStore(":memory:")
        store.insert(_token("t1"))
        assert store.count() == 1
        store.close()


class TestOpenStore:
    def test_memory_path_selects_in_memory_store(self) -> None:
        assert isinstance(open_store(":memory:"), InMemoryTokenStore)

    def test_file_path_selects_sqlite(self, tmp_path: Path) -> None:
        store = open_store(tmp_path / "tokens.db")
        assert isinstance(store, SQLiteTokenStore)
        store.close()
