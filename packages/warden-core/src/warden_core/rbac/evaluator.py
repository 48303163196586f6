"""Pure permission evaluation against the capability matrix."""

from __future__ import annotations

from warden_core.rbac.matrix import CapabilityMatrix
from warden_core.rbac.models import (
    Action,
    PermissionRequest,
    Principal,
    Resource,
    ResourcePermissions,
    Scope,
)

_SUMMARY_ACTIONS = (Action.create, Action.read, Action.update, Action.delete, Action.manage)


class PermissionEvaluator:
    """Decides a single request. Side-effect free; never touches a cache.

    Decision order: inactive principals are denied, then the widest
    matching grant is looked up. ``all`` allows. ``own`` allows only when the
    request names an owner equal to the principal. A capability-only request
    (no owner) against an ``own`` grant is denied here; use
    :meth:`capability` or :meth:`resource_permissions` to see it.
    """

    def __init__(self, matrix: CapabilityMatrix | None = None) -> None:
        self.matrix = matrix if matrix is not None else CapabilityMatrix.default()

    def evaluate(self, principal: Principal, request: PermissionRequest) -> bool:
        if not principal.active:
            return False

        scope = self.matrix.lookup(principal.role, request.resource, request.action)
        if scope is None:
            return False
        if scope is Scope.all:
            return True
        return request.resource_owner_id is not None and request.resource_owner_id == principal.id

    def capability(self, principal: Principal, resource: str, action: str) -> Scope | None:
        """Scope the principal's role holds for (resource, action), ignoring ownership."""
        if not principal.active:
            return None
        return self.matrix.lookup(principal.role, resource, action)

    def accessible_resources(self, principal: Principal) -> list[Resource]:
        """Concrete resource types the role holds any grant on, in declaration order."""
        if not principal.active:
            return []
        return [
            res for res in Resource.concrete()
            if any(self.matrix.resolve(principal.role, res, a) is not None for a in Action)
        ]

    def resource_permissions(self, principal: Principal, resource: str) -> ResourcePermissions:
        """Summarize create/read/update/delete/manage capability for one resource type."""
        if not principal.active:
            return ResourcePermissions()

        res = Resource.parse(resource)
        if res is None:
            # Routed through lookup() so the unknown name is logged once.
            self.matrix.lookup(principal.role, resource, Action.read.value)
            return ResourcePermissions()

        scopes = {a: self.matrix.resolve(principal.role, res, a) for a in _SUMMARY_ACTIONS}
        granted = [s for s in scopes.values() if s is not None]
        if Scope.all in granted:
            overall: Scope | None = Scope.all
        elif granted:
            overall = Scope.own
        else:
            overall = None

        return ResourcePermissions(
            can_create=scopes[Action.create] is not None,
            can_read=scopes[Action.read] is not None,
            can_update=scopes[Action.update] is not None,
            can_delete=scopes[Action.delete] is not None,
            can_manage=scopes[Action.manage] is not None,
            scope=overall,
        )
