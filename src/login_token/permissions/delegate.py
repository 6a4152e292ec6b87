"""PermissionDelegate: the effective-tags lookup the engines depend on.

The service never decides permissions itself. It asks an external resolver
for the *effective tags* a requester holds over a target identity path and
checks at most two of them: ``@admin`` and the token-list capability tag.

Resolvers in the wild return loosely structured payloads. They are turned
into an :class:`EffectiveTags` value by :meth:`EffectiveTags.from_payload`
before any check is made, so engines only ever see ``tag -> bool``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from login_token.errors import PermissionLookupError
from login_token.tokens.token import owner_within

ADMIN_TAG = "@admin"
LIST_TAG = "@token.list"


@dataclass(frozen=True)
class EffectiveTags:
    """Resolved capability flags a requester holds over one target path.

    Parameters
    ----------
    tags:
        Mapping of tag name to flag. Absent tags are False.
    """

    tags: Mapping[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    def has(self, tag: str) -> bool:
        """Return True only if *tag* is present and exactly True."""
        return self.tags.get(tag) is True

    @property
    def is_admin(self) -> bool:
        """Return True if the ``@admin`` tag is set."""
        return self.has(ADMIN_TAG)

    def has_any(self, *tags: str) -> bool:
        """Return True if any of *tags* is set."""
        return any(self.has(tag) for tag in tags)

    @classmethod
    def from_payload(cls, payload: object, path: str = "") -> "EffectiveTags":
        """Parse a resolver payload for the target identity *path*.

        Two shapes are accepted:

        - flat: ``{"@admin": true, "@token.list": false}``
        - nested by path prefix: ``{"tags": {"acme": {"@admin": true},
          "acme.ops": {"@admin": false}}}``; only prefixes that are *path*
          itself or one of its dot-ancestors (the root ``""`` included)
          apply, and longer prefixes override shorter ones.

        Non-boolean tag values count as False.

        Raises
        ------
        PermissionLookupError
            If *payload* has neither shape.
        """
        if not isinstance(payload, Mapping):
            raise PermissionLookupError(
                f"Tag payload must be a mapping, got {type(payload).__name__}"
            )

        if "tags" in payload:
            nested = payload["tags"]
            if not isinstance(nested, Mapping):
                raise PermissionLookupError("'tags' entry must be a mapping of prefix to tags")
            merged: dict[str, bool] = {}
            for prefix in sorted(nested, key=lambda p: (len(str(p)), str(p))):
                prefix_tags = nested[prefix]
                if not isinstance(prefix_tags, Mapping):
                    raise PermissionLookupError(f"Tags for prefix {prefix!r} must be a mapping")
                if prefix != "" and not owner_within(path, str(prefix)):
                    continue
                merged.update(_flags(prefix_tags))
            return cls(tags=merged)

        return cls(tags=_flags(payload))


def _flags(raw: Mapping[object, object]) -> dict[str, bool]:
    return {str(name): value is True for name, value in raw.items()}


class PermissionDelegate(ABC):
    """Abstract effective-tags resolver.

    Implementations wrap a call to the external permission service. They
    may block and may fail; failures must be raised as
    :class:`~login_token.errors.PermissionLookupError` (or any exception,
    which the engines treat the same way). No retries are expected.
    """

    @abstractmethod
    def get_effective_tags(self, requester: str, path: str) -> EffectiveTags:
        """Return the tags *requester* holds over identity *path*.

        Parameters
        ----------
        requester:
            Verified identity of the caller.
        path:
            Dot-segmented identity path being acted upon.

        Raises
        ------
        PermissionLookupError
            If the resolver cannot be reached or its answer is unusable.
        """
