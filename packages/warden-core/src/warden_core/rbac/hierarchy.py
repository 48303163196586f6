"""Rank comparisons between roles.

Rank never grants permissions on its own; these helpers exist for
"minimum role" style checks that callers make separately from the matrix.
"""

from __future__ import annotations

from warden_core.rbac.models import Principal, Role


def is_higher_role(role: Role | str, other: Role | str) -> bool:
    return Role.parse(role).rank > Role.parse(other).rank


def is_equal_or_higher_role(role: Role | str, other: Role | str) -> bool:
    return Role.parse(role).rank >= Role.parse(other).rank


def has_minimum_role(principal: Principal | None, minimum: Role | str) -> bool:
    """True if the principal is active and ranks at least ``minimum``."""
    if principal is None or not principal.active:
        return False
    return is_equal_or_higher_role(principal.role, minimum)


def can_manage_user(manager: Principal | None, target: Principal | None) -> bool:
    """A manager must be active and strictly outrank the target."""
    if manager is None or target is None or not manager.active:
        return False
    return is_higher_role(manager.role, target.role)
