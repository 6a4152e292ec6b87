"""StaticPermissionDelegate: in-process grant table.

Grants are ``(requester, path) -> {tag: bool}``. The effective tags a
requester holds over a target are the merge of the grants on the target's
dot-ancestors, from the root down to the target itself, so a grant on
``acme`` covers ``acme.ops.alice`` unless a more specific grant overrides
it. Used by the CLI and in tests; production deployments plug in a
delegate that calls the real permission service.
"""
from __future__ import annotations

import json
import threading
from pathlib import Path

from login_token.errors import PermissionLookupError
from login_token.permissions.delegate import EffectiveTags, PermissionDelegate


class StaticPermissionDelegate(PermissionDelegate):
    """Thread-safe, hierarchical grant table."""

    def __init__(self) -> None:
        self._grants: dict[str, dict[str, dict[str, bool]]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Grant management
    # ------------------------------------------------------------------

    def grant(self, requester: str, path: str, tags: dict[str, bool]) -> None:
        """Record *tags* for *requester* on *path* and everything below it.

        Parameters
        ----------
        requester:
            Identity receiving the grant.
        path:
            Dot-segmented identity path. An empty string grants on the root.
        tags:
            Tag flags to merge into any existing grant on the same path.
        """
        with self._lock:
            per_path = self._grants.setdefault(requester, {})
            per_path.setdefault(path, {}).update({k: bool(v) for k, v in tags.items()})

    def revoke(self, requester: str, path: str) -> None:
        """Drop every tag *requester* holds directly on *path*. No-op if absent."""
        with self._lock:
            self._grants.get(requester, {}).pop(path, None)

    # ------------------------------------------------------------------
    # PermissionDelegate interface
    # ------------------------------------------------------------------

    def get_effective_tags(self, requester: str, path: str) -> EffectiveTags:
        with self._lock:
            per_path = dict(self._grants.get(requester, {}))

        merged: dict[str, bool] = {}
        for prefix in _ancestors(path):
            merged.update(per_path.get(prefix, {}))
        return EffectiveTags(tags=merged)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: Path) -> "StaticPermissionDelegate":
        """Load a grant table from JSON.

        Expected shape::

            {"alice": {"acme": {"@admin": true}},
             "bob": {"acme.ops": {"@token.list": true}}}

        Raises
        ------
        PermissionLookupError
            If the file cannot be read or has the wrong shape.
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PermissionLookupError(f"Could not load grant table {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise PermissionLookupError("Grant table must be a JSON object")

        delegate = cls()
        for requester, per_path in data.items():
            if not isinstance(per_path, dict):
                raise PermissionLookupError(f"Grants for {requester!r} must be an object")
            for target, tags in per_path.items():
                if not isinstance(tags, dict):
                    raise PermissionLookupError(
                        f"Tags for {requester!r} on {target!r} must be an object"
                    )
                delegate.grant(str(requester), str(target), tags)
        return delegate

    def to_dict(self) -> dict[str, dict[str, dict[str, bool]]]:
        """Return a deep copy of the grant table in :meth:`from_file` shape."""
        with self._lock:
            return {
                requester: {p: dict(tags) for p, tags in per_path.items()}
                for requester, per_path in self._grants.items()
            }


def _ancestors(path: str) -> list[str]:
    """Return ``["", "a", "a.b", "a.b.c"]`` for ``"a.b.c"``."""
    prefixes = [""]
    if not path:
        return prefixes
    parts = path.split(".")
    for i in range(1, len(parts) + 1):
        prefixes.append(".".join(parts[:i]))
    return prefixes
