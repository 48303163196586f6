"""Roles, grants, the capability matrix, and the pure evaluator."""

from warden_core.rbac.evaluator import PermissionEvaluator
from warden_core.rbac.hierarchy import (
    can_manage_user,
    has_minimum_role,
    is_equal_or_higher_role,
    is_higher_role,
)
from warden_core.rbac.matrix import DEFAULT_GRANTS, CapabilityMatrix
from warden_core.rbac.models import (
    Action,
    BatchResult,
    CapabilityGrant,
    PermissionRequest,
    PermissionRequestError,
    Principal,
    Resource,
    ResourcePermissions,
    Role,
    Scope,
)

__all__ = [
    "Action",
    "BatchResult",
    "CapabilityGrant",
    "CapabilityMatrix",
    "DEFAULT_GRANTS",
    "PermissionEvaluator",
    "PermissionRequest",
    "PermissionRequestError",
    "Principal",
    "Resource",
    "ResourcePermissions",
    "Role",
    "Scope",
    "can_manage_user",
    "has_minimum_role",
    "is_equal_or_higher_role",
    "is_higher_role",
]
