"""Owner lookup and scope-based collection filtering."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

from warden_core.rbac.matrix import CapabilityMatrix
from warden_core.rbac.models import Principal, Scope

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_OWNER_FIELDS: tuple[str, ...] = ("createdBy", "created_by", "userId", "user_id")


class OwnershipResolver:
    """Reads the owner id from records that are mappings or plain objects.

    The first of ``owner_fields`` present with a non-empty value wins. A
    custom ``getter`` replaces field lookup entirely.
    """

    def __init__(
        self,
        owner_fields: Sequence[str] = DEFAULT_OWNER_FIELDS,
        getter: Callable[[Any], str | None] | None = None,
    ) -> None:
        self.owner_fields = tuple(owner_fields)
        self._getter = getter

    def owner_of(self, item: Any) -> str | None:
        if self._getter is not None:
            return self._getter(item)
        for field in self.owner_fields:
            if isinstance(item, Mapping):
                value = item.get(field)
            else:
                value = getattr(item, field, None)
            if value is not None and value != "":
                return str(value)
        return None

    def owns(self, principal: Principal | None, item: Any) -> bool:
        if principal is None:
            return False
        return self.owner_of(item) == principal.id

    def filter(
        self,
        matrix: CapabilityMatrix,
        principal: Principal,
        items: Iterable[T],
        resource: str,
        action: str,
    ) -> list[T]:
        """Keep what the principal may access: everything, owned items only, or nothing."""
        if not principal.active:
            return []
        scope = matrix.lookup(principal.role, resource, action)
        if scope is None:
            return []
        if scope is Scope.all:
            return list(items)
        return [item for item in items if self.owner_of(item) == principal.id]
