"""Static capability matrix mapping each role to its grants."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from warden_core.rbac.models import Action, CapabilityGrant, Resource, Role, Scope

logger = logging.getLogger(__name__)


def _grants(resource: Resource, actions: Iterable[Action], scope: Scope = Scope.all) -> list[CapabilityGrant]:
    return [CapabilityGrant(resource=resource, action=a, scope=scope) for a in actions]


_CRUDM = (Action.create, Action.read, Action.update, Action.delete, Action.manage)

DEFAULT_GRANTS: dict[Role, list[CapabilityGrant]] = {
    Role.admin: [
        CapabilityGrant(resource=Resource.any, action=Action.manage, scope=Scope.all),
        *_grants(Resource.users, _CRUDM),
        CapabilityGrant(resource=Resource.settings, action=Action.manage),
        CapabilityGrant(resource=Resource.security, action=Action.manage),
        CapabilityGrant(resource=Resource.audit, action=Action.read),
        CapabilityGrant(resource=Resource.monitoring, action=Action.read),
    ],
    Role.editor: [
        *_grants(Resource.products, _CRUDM),
        *_grants(Resource.categories, _CRUDM),
        *_grants(Resource.pages, _CRUDM),
        *_grants(Resource.media, _CRUDM),
        CapabilityGrant(resource=Resource.orders, action=Action.read),
        CapabilityGrant(resource=Resource.profile, action=Action.manage, scope=Scope.own),
    ],
    Role.viewer: [
        CapabilityGrant(resource=Resource.products, action=Action.read),
        CapabilityGrant(resource=Resource.categories, action=Action.read),
        CapabilityGrant(resource=Resource.pages, action=Action.read),
        CapabilityGrant(resource=Resource.media, action=Action.read),
        CapabilityGrant(resource=Resource.orders, action=Action.read),
        CapabilityGrant(resource=Resource.profile, action=Action.manage, scope=Scope.own),
    ],
}


class CapabilityMatrix:
    """Immutable role -> grants table, precomputed into a total lookup index.

    Every (role, resource, action) triple resolves to a Scope or to None
    (implicit deny). When several grants match, ``all`` wins over ``own``.
    Rank is never used to infer grants.
    """

    def __init__(self, grants: Mapping[Role | str, Iterable[CapabilityGrant]]) -> None:
        by_role: dict[Role, frozenset[CapabilityGrant]] = {role: frozenset() for role in Role}
        for role, role_grants in grants.items():
            by_role[Role.parse(role)] = frozenset(role_grants)
        self._grants = MappingProxyType(by_role)

        index: dict[tuple[Role, Resource, Action], Scope] = {}
        for role, role_grants in by_role.items():
            for resource in Resource.concrete():
                for action in Action:
                    scope = _best_scope(g.scope for g in role_grants if g.covers(resource, action))
                    if scope is not None:
                        index[(role, resource, action)] = scope
        self._index = MappingProxyType(index)

    @classmethod
    def default(cls) -> CapabilityMatrix:
        return cls(DEFAULT_GRANTS)

    @property
    def roles(self) -> list[Role]:
        return list(self._grants)

    def grants_for(self, role: Role | str) -> frozenset[CapabilityGrant]:
        return self._grants[Role.parse(role)]

    def resolve(self, role: Role, resource: Resource, action: Action) -> Scope | None:
        """Return the widest scope granted, or None for no grant."""
        return self._index.get((role, resource, action))

    def lookup(self, role: Role, resource: str, action: str) -> Scope | None:
        """Resolve from raw strings. Unknown resources or actions deny with a warning."""
        res = Resource.parse(resource)
        act = Action.parse(action)
        if res is None or act is None:
            logger.warning(
                "Unknown resource/action %s:%s for role %s; denying",
                resource, action, role.value,
            )
            return None
        return self._index.get((role, res, act))

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        counts = ", ".join(f"{r.value}={len(g)}" for r, g in self._grants.items())
        return f"<CapabilityMatrix {counts}>"


def _best_scope(scopes: Iterable[Scope]) -> Scope | None:
    best: Scope | None = None
    for scope in scopes:
        if scope is Scope.all:
            return Scope.all
        best = scope
    return best
