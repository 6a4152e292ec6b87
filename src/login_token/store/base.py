"""Token storage: abstract interface.

TokenStore defines the storage contract the lifecycle engines rely on.
The one primitive with real concurrency requirements is
:meth:`TokenStore.atomic_update`: every backend must apply the predicate
check and the transform to a row as a single step, so that two concurrent
logins against a single-use token cannot both succeed.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterable

from login_token.tokens.token import LoginToken

TokenPredicate = Callable[[LoginToken], bool]
TokenTransform = Callable[[LoginToken], LoginToken]

# Highest BMP code point; appended to a prefix to close its range.
_RANGE_CEILING = "\uffff"


@dataclass(frozen=True)
class IdRange:
    """Inclusive lexical range of token ids.

    Parameters
    ----------
    start:
        Lowest id in the range.
    end:
        Highest id in the range.
    """

    start: str
    end: str

    @classmethod
    def exact(cls, token_id: str) -> "IdRange":
        """Return the narrowest range containing exactly *token_id*."""
        return cls(start=token_id, end=token_id)

    @classmethod
    def prefix(cls, prefix: str) -> "IdRange":
        """Return the range of every id that starts with *prefix*."""
        return cls(start=prefix, end=prefix + _RANGE_CEILING)

    def contains(self, token_id: str) -> bool:
        """Return True if *token_id* falls inside the range."""
        return self.start <= token_id <= self.end


@dataclass(frozen=True)
class TokenChange:
    """Before/after pair produced by :meth:`TokenStore.atomic_update`."""

    old: LoginToken
    new: LoginToken


class TokenStore(ABC):
    """Abstract base class for token storage backends.

    Implementations must be safe for concurrent use from multiple threads.
    """

    @abstractmethod
    def atomic_update(
        self,
        id_range: IdRange,
        predicate: TokenPredicate,
        transform: TokenTransform,
    ) -> list[TokenChange]:
        """Conditionally transform every matching row, atomically per row.

        Parameters
        ----------
        id_range:
            Rows whose id falls outside this range are never touched.
        predicate:
            Evaluated against the current row value inside the atomic step.
        transform:
            Produces the new row value. Must not change ``token_id``.

        Returns
        -------
        list[TokenChange]
            One entry per row that matched and was rewritten.

        Raises
        ------
        StoreError
            If the backend fails.
        """

    @abstractmethod
    def get(self, token_id: str) -> LoginToken | None:
        """Return the token with *token_id*, or None if absent."""

    @abstractmethod
    def get_many(self, token_ids: Iterable[str]) -> list[LoginToken]:
        """Return every token whose id is in *token_ids*; missing ids are skipped."""

    @abstractmethod
    def insert(self, token: LoginToken) -> str:
        """Persist a new token and return its id.

        Raises
        ------
        StoreError
            If the id already exists or the backend fails.
        """

    @abstractmethod
    def delete(self, token_id: str) -> LoginToken | None:
        """Remove a token, returning its last value, or None if absent."""

    @abstractmethod
    def delete_where(self, predicate: TokenPredicate) -> list[LoginToken]:
        """Remove every token matching *predicate* and return them."""

    @abstractmethod
    def list_where(self, predicate: TokenPredicate) -> list[LoginToken]:
        """Return every token matching *predicate*."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored tokens."""

    def close(self) -> None:
        """Release backend resources. The default implementation does nothing."""
