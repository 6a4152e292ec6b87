"""Error taxonomy for the login-token service.

Public errors derive from :class:`TokenServiceError` and carry a numeric
``code`` plus a caller-safe ``message``; these are what the RPC layer
returns. :class:`StoreError` and :class:`PermissionLookupError` are raised
by infrastructure collaborators and never reach callers directly: the
lifecycle engines log them and re-raise an opaque public error instead.
"""
from __future__ import annotations


# ---------------------------------------------------------------------------
# Public errors
# ---------------------------------------------------------------------------


class TokenServiceError(Exception):
    """Base class for all errors returned to RPC callers."""

    code: int = 1
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, object]:
        """Serialize to the ``{"code", "message"}`` shape used on the wire."""
        return {"code": self.code, "message": self.message}


class InternalError(TokenServiceError):
    """Storage or collaborator failure, or a broken store invariant."""

    code = 1
    default_message = "Internal error"


class InvalidTokenError(TokenServiceError):
    """Token id not found, already dead, or past its deadline."""

    code = 2
    default_message = "Invalid token"


class DeadlineInPastError(TokenServiceError):
    """Requested deadline is earlier than the current server time."""

    code = 4
    default_message = "Deadline is in the past"


class DeadlineParseError(TokenServiceError):
    """Requested deadline could not be converted to a timestamp."""

    code = 5
    default_message = "Deadline conversion error"


class PermissionDeniedError(TokenServiceError):
    """Impersonation requested without administrative rights."""

    code = 6
    default_message = "Permission denied"


class InvalidParamsError(TokenServiceError):
    """Caller lacks visibility on a requested token, or a lookup failed."""

    code = 7
    default_message = "Invalid params"


# ---------------------------------------------------------------------------
# Infrastructure errors
# ---------------------------------------------------------------------------


class StoreError(Exception):
    """Raised by a TokenStore backend when the underlying storage fails."""


class PermissionLookupError(Exception):
    """Raised by a PermissionDelegate when tags cannot be resolved or parsed."""


__all__ = [
    "DeadlineInPastError",
    "DeadlineParseError",
    "InternalError",
    "InvalidParamsError",
    "InvalidTokenError",
    "PermissionDeniedError",
    "PermissionLookupError",
    "StoreError",
    "TokenServiceError",
]
