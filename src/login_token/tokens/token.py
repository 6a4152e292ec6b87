"""LoginToken: the persisted state of one login token.

A token is a single row of authorization state: who it authenticates as,
how many validations it has left, and the instant after which it is no
longer accepted. The engines in :mod:`login_token.lifecycle` are the only
code that mutates tokens; this module only describes them.

Use-count semantics
-------------------
``uses_remaining > 0``
    That many validations remain; each successful login decrements it.
``uses_remaining == 0``
    Dead (consumed or exhausted).
``uses_remaining < 0``
    Unlimited; never decremented.
"""
from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field, replace
from typing import Callable

from login_token.errors import DeadlineParseError


def utc_now() -> datetime.datetime:
    """Return the current UTC time. The default clock for every engine."""
    return datetime.datetime.now(datetime.timezone.utc)


Clock = Callable[[], datetime.datetime]


def new_token_id() -> str:
    """Return a fresh opaque token identifier."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class LoginToken:
    """A login token row.

    Parameters
    ----------
    token_id:
        Opaque unique identifier handed to the caller. Immutable.
    owner:
        Dot-segmented identity path the token authenticates as
        (e.g. ``"acme.ops.alice"``).
    uses_remaining:
        Remaining validation count. See the module docstring.
    deadline:
        UTC instant after which the token is invalid. The boundary is
        inclusive: a token whose deadline equals *now* is still valid.
    last_used_at:
        UTC instant of the most recent successful validation, or None.
    metadata:
        Opaque caller-supplied value. Never interpreted.
    created_at:
        UTC instant the token was issued.
    """

    token_id: str
    owner: str
    uses_remaining: int
    deadline: datetime.datetime
    last_used_at: datetime.datetime | None = None
    metadata: object | None = None
    created_at: datetime.datetime = field(default_factory=utc_now)

    # ------------------------------------------------------------------
    # State predicates
    # ------------------------------------------------------------------

    @property
    def is_dead(self) -> bool:
        """Return True if the token has no validations left."""
        return self.uses_remaining == 0

    @property
    def is_unlimited(self) -> bool:
        """Return True if the token is never decremented."""
        return self.uses_remaining < 0

    def is_expired(self, now: datetime.datetime) -> bool:
        """Return True if *now* is strictly past the deadline."""
        return self.deadline < now

    def is_valid(self, now: datetime.datetime) -> bool:
        """Return True if the token can be validated at *now*."""
        return not self.is_dead and not self.is_expired(now)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def used(self, now: datetime.datetime) -> "LoginToken":
        """Return the token as it looks after one successful validation."""
        remaining = self.uses_remaining - 1 if self.uses_remaining > 0 else self.uses_remaining
        return replace(self, uses_remaining=remaining, last_used_at=now)

    def killed(self) -> "LoginToken":
        """Return the token with its use count forced to zero."""
        return replace(self, uses_remaining=0)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, object]:
        """Serialize to the wire representation returned by the RPC methods."""
        return {
            "id": self.token_id,
            "user": self.owner,
            "ttl": self.uses_remaining,
            "deadline": self.deadline.isoformat(),
            "lastSeen": self.last_used_at.isoformat() if self.last_used_at else None,
            "metadata": self.metadata,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoginToken":
        """Reconstruct a LoginToken from :meth:`to_dict` output."""
        last_seen = data.get("lastSeen")
        created = data.get("createdAt")
        return cls(
            token_id=str(data["id"]),
            owner=str(data["user"]),
            uses_remaining=int(data["ttl"]),  # type: ignore[arg-type]
            deadline=_as_utc(datetime.datetime.fromisoformat(str(data["deadline"]))),
            last_used_at=(
                _as_utc(datetime.datetime.fromisoformat(str(last_seen))) if last_seen else None
            ),
            metadata=data.get("metadata"),
            created_at=(
                _as_utc(datetime.datetime.fromisoformat(str(created))) if created else utc_now()
            ),
        )


# ------------------------------------------------------------------
# Owner paths
# ------------------------------------------------------------------


def owner_within(owner: str, path: str) -> bool:
    """Return True if *owner* equals *path* or descends from it.

    Descent follows dot-segment boundaries: ``"team.sub"`` is within
    ``"team"`` but ``"teamsuffix"`` is not.
    """
    return owner == path or owner.startswith(path + ".")


# ------------------------------------------------------------------
# Deadline parsing
# ------------------------------------------------------------------


def parse_deadline(value: object) -> datetime.datetime:
    """Convert a caller-supplied deadline into a UTC datetime.

    Accepted forms are a :class:`datetime.datetime` (naive values are taken
    as UTC), an ISO-8601 / RFC 3339 string (``Z`` suffix allowed), or a
    Unix timestamp in seconds as ``int`` or ``float``.

    Raises
    ------
    DeadlineParseError
        If *value* is missing or has any other shape.
    """
    if isinstance(value, datetime.datetime):
        return _as_utc(value)

    # bool is an int subclass; True is not a deadline
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise DeadlineParseError() from exc

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return _as_utc(datetime.datetime.fromisoformat(text))
        except ValueError as exc:
            raise DeadlineParseError() from exc

    raise DeadlineParseError()


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)
