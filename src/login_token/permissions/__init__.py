"""Delegated permission checks.

Quick start
-----------
::

    from login_token.permissions import StaticPermissionDelegate

    permissions = StaticPermissionDelegate()
    permissions.grant("root", "acme", {"@admin": True})
    print(permissions.get_effective_tags("root", "acme.alice").is_admin)  # True
"""
from __future__ import annotations

from login_token.permissions.delegate import (
    ADMIN_TAG,
    LIST_TAG,
    EffectiveTags,
    PermissionDelegate,
)
from login_token.permissions.static import StaticPermissionDelegate

__all__ = [
    "ADMIN_TAG",
    "LIST_TAG",
    "EffectiveTags",
    "PermissionDelegate",
    "StaticPermissionDelegate",
]
