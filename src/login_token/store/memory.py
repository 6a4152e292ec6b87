"""InMemoryTokenStore: dictionary-backed TokenStore.

Every operation holds a single lock for its whole read-modify-write, which
makes :meth:`InMemoryTokenStore.atomic_update` serializable across rows.
A multi-row update is all or nothing, as in the SQLite backend.

Suitable for tests, the CLI's ``:memory:`` mode, and single-process
deployments that accept losing tokens on restart.
"""
from __future__ import annotations

import threading
from typing import Iterable

from login_token.errors import StoreError
from login_token.store.base import (
    IdRange,
    TokenChange,
    TokenPredicate,
    TokenStore,
    TokenTransform,
)
from login_token.tokens.token import LoginToken


class InMemoryTokenStore(TokenStore):
    """Thread-safe in-memory token store."""

    def __init__(self) -> None:
        self._tokens: dict[str, LoginToken] = {}
        self._lock = threading.Lock()

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
            if id_range.start == id_range.end:
                candidates = [id_range.start] if id_range.start in self._tokens else []
            else:
                candidates = [tid for tid in sorted(self._tokens) if id_range.contains(tid)]

            for token_id in candidates:
                current = self._tokens[token_id]
                if not predicate(current):
                    continue
                updated = transform(current)
                if updated.token_id != token_id:
                    raise StoreError(f"Transform changed token id {token_id!r}")
                changes.append(TokenChange(old=current, new=updated))

            # Nothing is written until every matching row has transformed.
            for change in changes:
                self._tokens[change.new.token_id] = change.new
        return changes

    def insert(self, token: LoginToken) -> str:
        with self._lock:
            if token.token_id in self._tokens:
                raise StoreError(f"Duplicate token id {token.token_id!r}")
            self._tokens[token.token_id] = token
        return token.token_id

    def delete(self, token_id: str) -> LoginToken | None:
        with self._lock:
            return self._tokens.pop(token_id, None)

    def delete_where(self, predicate: TokenPredicate) -> list[LoginToken]:
        with self._lock:
            doomed = [t for t in self._tokens.values() if predicate(t)]
            for token in doomed:
                del self._tokens[token.token_id]
        return doomed

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def get(self, token_id: str) -> LoginToken | None:
        with self._lock:
            return self._tokens.get(token_id)

    def get_many(self, token_ids: Iterable[str]) -> list[LoginToken]:
        wanted = set(token_ids)
        with self._lock:
            return [self._tokens[tid] for tid in sorted(wanted) if tid in self._tokens]

    def list_where(self, predicate: TokenPredicate) -> list[LoginToken]:
        with self._lock:
            snapshot = list(self._tokens.values())
        return [t for t in snapshot if predicate(t)]

    def count(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, token_id: object) -> bool:
        with self._lock:
            return token_id in self._tokens
