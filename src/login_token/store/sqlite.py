"""SQLiteTokenStore: durable TokenStore on top of sqlite3.

Schema::

    tokens(
        id         TEXT PRIMARY KEY,
        user       TEXT NOT NULL,
        ttl        INTEGER NOT NULL,
        deadline   TEXT NOT NULL,   -- ISO-8601, UTC
        last_seen  TEXT,            -- ISO-8601, UTC
        metadata   TEXT,            -- JSON
        created_at TEXT NOT NULL    -- ISO-8601, UTC
    )

Conditional updates and bulk deletes run inside ``BEGIN IMMEDIATE``
transactions. SQLite grants the write lock to one connection at a time, so
the select-check-write sequence of :meth:`SQLiteTokenStore.atomic_update`
is serialized against every other writer, including other processes
sharing the same database file. Within one process a lock also guards the
shared connection object.
"""
from __future__ import annotations

import datetime
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterable

from login_token.errors import StoreError
from login_token.store.base import (
    IdRange,
    TokenChange,
    TokenPredicate,
    TokenStore,
    TokenTransform,
)
from login_token.tokens.token import LoginToken

logger = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS tokens (
        id TEXT PRIMARY KEY,
        user TEXT NOT NULL,
        ttl INTEGER NOT NULL,
        deadline TEXT NOT NULL,
        last_seen TEXT,
        metadata TEXT,
        created_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_tokens_user ON tokens(user);
    CREATE INDEX IF NOT EXISTS idx_tokens_deadline ON tokens(deadline);
    CREATE INDEX IF NOT EXISTS idx_tokens_ttl ON tokens(ttl)
"""

_COLUMNS = "id, user, ttl, deadline, last_seen, metadata, created_at"


class SQLiteTokenStore(TokenStore):
    """SQLite-backed token store.

    Parameters
    ----------
    db_path:
        Database file path, or ``":memory:"`` for a private in-memory
        database. Parent directories are created automatically.
    timeout:
        Seconds to wait for another connection's write lock before failing.
    """

    def __init__(self, db_path: str | Path = ":memory:", timeout: float = 5.0) -> None:
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            # isolation_level=None: transactions are opened explicitly below
            self._conn = sqlite3.connect(
                self._db_path,
                timeout=timeout,
                check_same_thread=False,
                isolation_level=None,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open token database {self._db_path!r}: {exc}") from exc
        logger.debug("Opened token database at %s", self._db_path)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def atomic_update(
        self,
        id_range: IdRange,
        predicate: TokenPredicate,
        transform: TokenTransform,
    ) -> list[TokenChange]:
        changes: list[TokenChange] = []
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                try:
                    rows = self._conn.execute(
                        f"SELECT {_COLUMNS} FROM tokens WHERE id BETWEEN ? AND ? ORDER BY id",
                        (id_range.start, id_range.end),
                    ).fetchall()
                    for row in rows:
                        current = _row_to_token(row)
                        if not predicate(current):
                            continue
                        updated = transform(current)
                        if updated.token_id != current.token_id:
                            raise StoreError(f"Transform changed token id {current.token_id!r}")
                        self._conn.execute(
                            "UPDATE tokens SET user = ?, ttl = ?, deadline = ?, last_seen = ?, "
                            "metadata = ? WHERE id = ?",
                            (
                                updated.owner,
                                updated.uses_remaining,
                                _iso(updated.deadline),
                                _iso(updated.last_used_at),
                                _dump_metadata(updated.metadata),
                                updated.token_id,
                            ),
                        )
                        changes.append(TokenChange(old=current, new=updated))
                except BaseException:
                    self._conn.execute("ROLLBACK")
                    raise
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                raise StoreError(f"Conditional update failed: {exc}") from exc
        return changes

    def insert(self, token: LoginToken) -> str:
        with self._lock:
            try:
                self._conn.execute(
                    f"INSERT INTO tokens ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        token.token_id,
                        token.owner,
                        token.uses_remaining,
                        _iso(token.deadline),
                        _iso(token.last_used_at),
                        _dump_metadata(token.metadata),
                        _iso(token.created_at),
                    ),
                )
            except sqlite3.Error as exc:
                raise StoreError(f"Insert of token {token.token_id!r} failed: {exc}") from exc
        return token.token_id

    def delete(self, token_id: str) -> LoginToken | None:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                try:
                    row = self._conn.execute(
                        f"SELECT {_COLUMNS} FROM tokens WHERE id = ?", (token_id,)
                    ).fetchone()
                    if row is not None:
                        self._conn.execute("DELETE FROM tokens WHERE id = ?", (token_id,))
                except BaseException:
                    self._conn.execute("ROLLBACK")
                    raise
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                raise StoreError(f"Delete of token {token_id!r} failed: {exc}") from exc
        return _row_to_token(row) if row is not None else None

    def delete_where(self, predicate: TokenPredicate) -> list[LoginToken]:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                try:
                    rows = self._conn.execute(f"SELECT {_COLUMNS} FROM tokens").fetchall()
                    doomed = [t for t in (_row_to_token(r) for r in rows) if predicate(t)]
                    self._conn.executemany(
                        "DELETE FROM tokens WHERE id = ?",
                        [(t.token_id,) for t in doomed],
                    )
                except BaseException:
                    self._conn.execute("ROLLBACK")
                    raise
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                raise StoreError(f"Bulk delete failed: {exc}") from exc
        return doomed

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def get(self, token_id: str) -> LoginToken | None:
        row = self._fetchone(f"SELECT {_COLUMNS} FROM tokens WHERE id = ?", (token_id,))
        return _row_to_token(row) if row is not None else None

    def get_many(self, token_ids: Iterable[str]) -> list[LoginToken]:
        wanted = sorted(set(token_ids))
        if not wanted:
            return []
        placeholders = ", ".join("?" * len(wanted))
        rows = self._fetchall(
            f"SELECT {_COLUMNS} FROM tokens WHERE id IN ({placeholders}) ORDER BY id",
            tuple(wanted),
        )
        return [_row_to_token(r) for r in rows]

    def list_where(self, predicate: TokenPredicate) -> list[LoginToken]:
        rows = self._fetchall(f"SELECT {_COLUMNS} FROM tokens ORDER BY id")
        return [t for t in (_row_to_token(r) for r in rows) if predicate(t)]

    def count(self) -> int:
        row = self._fetchone("SELECT COUNT(*) AS n FROM tokens")
        return int(row["n"]) if row is not None else 0

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"Query failed: {exc}") from exc

    def _fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"Query failed: {exc}") from exc


# ------------------------------------------------------------------
# Row conversion
# ------------------------------------------------------------------


def _iso(value: datetime.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse(value: str | None) -> datetime.datetime | None:
    return datetime.datetime.fromisoformat(value) if value else None


def _dump_metadata(metadata: object | None) -> str | None:
    if metadata is None:
        return None
    try:
        return json.dumps(metadata, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise StoreError(f"Token metadata is not JSON-serializable: {exc}") from exc


def _row_to_token(row: sqlite3.Row) -> LoginToken:
    metadata = row["metadata"]
    return LoginToken(
        token_id=row["id"],
        owner=row["user"],
        uses_remaining=int(row["ttl"]),
        deadline=datetime.datetime.fromisoformat(row["deadline"]),
        last_used_at=_parse(row["last_seen"]),
        metadata=json.loads(metadata) if metadata is not None else None,
        created_at=datetime.datetime.fromisoformat(row["created_at"]),
    )
