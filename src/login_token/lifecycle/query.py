"""QueryEngine: ``list`` and ``info``.

Visibility rules:

- A requester always sees the tokens it owns.
- Tokens owned by anyone else are visible only when the permission
  resolver grants ``@admin`` or the list capability tag over their owner.

The two calls differ in how they fail. A ``list`` scoped to a path the
requester cannot see returns nothing, indistinguishable from an empty
scope. An ``info`` that touches a token the requester cannot see fails as a
whole with :class:`InvalidParamsError`; no partial results are returned.
"""
from __future__ import annotations

import logging

from login_token.errors import InternalError, InvalidParamsError, StoreError
from login_token.lifecycle.requests import InfoRequest, ListRequest
from login_token.permissions.delegate import (
    ADMIN_TAG,
    LIST_TAG,
    EffectiveTags,
    PermissionDelegate,
)
from login_token.store.base import TokenPredicate, TokenStore
from login_token.tokens.token import LoginToken, owner_within

logger = logging.getLogger(__name__)


def _sort_key(token: LoginToken) -> tuple[str, str, str]:
    return (token.owner, token.deadline.isoformat(), token.token_id)


class QueryEngine:
    """Lists and inspects tokens with ownership/permission filtering.

    Parameters
    ----------
    store:
        Backend holding the tokens.
    permissions:
        Resolver consulted for tokens the requester does not own.
    admin_tag:
        Tag granting full visibility.
    list_tag:
        Capability tag granting token-list visibility.
    """

    def __init__(
        self,
        store: TokenStore,
        permissions: PermissionDelegate,
        admin_tag: str = ADMIN_TAG,
        list_tag: str = LIST_TAG,
    ) -> None:
        self._store = store
        self._permissions = permissions
        self._admin_tag = admin_tag
        self._list_tag = list_tag

    # ------------------------------------------------------------------
    # list
    # ------------------------------------------------------------------

    def list(self, requester: str, request: ListRequest) -> list[LoginToken]:
        """Return the tokens visible to *requester* under ``request.path``.

        With an empty path, returns tokens owned exactly by *requester*.
        With a path, returns tokens owned by the path or any dot-descendant
        of it, provided the requester holds ``@admin`` or the list tag over
        the path; otherwise returns an empty list.

        Raises
        ------
        InternalError
            If the store or the permission lookup fails.
        """
        path = request.path
        if not path:
            return self._list_where(lambda token: token.owner == requester)

        try:
            tags = self._permissions.get_effective_tags(requester, path)
        except Exception:
            logger.exception("Tag lookup for %s over %s failed", requester, path)
            raise InternalError() from None

        if not self._can_see(tags):
            logger.debug("%s has no list rights over %s", requester, path)
            return []

        return self._list_where(lambda token: owner_within(token.owner, path))

    # ------------------------------------------------------------------
    # info
    # ------------------------------------------------------------------

    def info(self, requester: str, request: InfoRequest) -> list[LoginToken]:
        """Return the tokens named in ``request.ids``, metadata included.

        Ids that do not exist are skipped. Every token owned by someone
        other than *requester* needs ``@admin`` or the list tag over its
        owner.

        Raises
        ------
        InvalidParamsError
            If any fetched token is not visible, or a lookup fails.
        InternalError
            If the store fails.
        """
        try:
            tokens = self._store.get_many(request.ids)
        except StoreError:
            logger.exception("Info fetch for %s failed", requester)
            raise InternalError() from None

        checked: dict[str, bool] = {}
        for token in tokens:
            if token.owner == requester:
                continue
            if token.owner not in checked:
                checked[token.owner] = self._visible_owner(requester, token.owner)
            if not checked[token.owner]:
                raise InvalidParamsError()

        return sorted(tokens, key=_sort_key)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _can_see(self, tags: EffectiveTags) -> bool:
        return tags.has_any(self._admin_tag, self._list_tag)

    def _visible_owner(self, requester: str, owner: str) -> bool:
        try:
            tags = self._permissions.get_effective_tags(requester, owner)
        except Exception:
            logger.exception("Tag lookup for %s over %s failed", requester, owner)
            return False
        visible = self._can_see(tags)
        if not visible:
            logger.info("%s asked for tokens of %s without rights", requester, owner)
        return visible

    def _list_where(self, predicate: TokenPredicate) -> list[LoginToken]:
        try:
            tokens = self._store.list_where(predicate)
        except StoreError:
            logger.exception("Token listing failed")
            raise InternalError() from None
        return sorted(tokens, key=_sort_key)
