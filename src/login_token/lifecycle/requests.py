"""Pydantic request models, one per RPC method that takes parameters.

Wire names follow the RPC surface (``userToImpersonate``); Python code uses
snake_case. Unknown fields are ignored.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LoginRequest(_Request):
    """Params for ``login``."""

    token: StrictStr


class ConsumeRequest(_Request):
    """Params for ``consume``."""

    token: StrictStr


class CreateRequest(_Request):
    """Params for ``create``.

    ``ttl`` is the use count: omitted or zero means one use, negative means
    unlimited. ``deadline`` is required and parsed by the issuance engine so
    that a malformed value yields a deadline error rather than a generic
    validation failure.
    """

    ttl: Optional[StrictInt] = None
    deadline: Any = Field(...)
    metadata: Any = None
    user_to_impersonate: Optional[StrictStr] = Field(default=None, alias="userToImpersonate")


class ListRequest(_Request):
    """Params for ``list``. An empty path lists the requester's own tokens."""

    path: StrictStr = ""


class InfoRequest(_Request):
    """Params for ``info``."""

    ids: list[StrictStr] = Field(default_factory=list)


__all__ = [
    "ConsumeRequest",
    "CreateRequest",
    "InfoRequest",
    "ListRequest",
    "LoginRequest",
]
