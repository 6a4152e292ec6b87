"""Token storage backends.

Quick start
-----------
::

    from login_token.store import InMemoryTokenStore, SQLiteTokenStore, open_store

    store = open_store("tokens.db")      # SQLiteTokenStore
    scratch = open_store(":memory:")     # InMemoryTokenStore
"""
from __future__ import annotations

from pathlib import Path

from login_token.store.base import IdRange, TokenChange, TokenStore
from login_token.store.memory import InMemoryTokenStore
from login_token.store.sqlite import SQLiteTokenStore


def open_store(db_path: str | Path) -> TokenStore:
    """Return the store backend selected by *db_path*.

    ``":memory:"`` selects :class:`InMemoryTokenStore`; anything else is
    treated as a SQLite database file.
    """
    if str(db_path) == ":memory:":
        return InMemoryTokenStore()
    return SQLiteTokenStore(db_path)


__all__ = [
    "IdRange",
    "InMemoryTokenStore",
    "SQLiteTokenStore",
    "TokenChange",
    "TokenStore",
    "open_store",
]
