"""RBAC models: roles, scopes, grants, principals, and permission requests."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class PermissionRequestError(ValueError):
    """Raised when a permission request is missing a required field."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"Malformed permission request: {field!r} is required")


class Role(str, Enum):
    """Principal roles, ordered by rank."""

    admin = "admin"
    editor = "editor"
    viewer = "viewer"

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]

    @classmethod
    def parse(cls, value: str | Role) -> Role:
        if isinstance(value, Role):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown role: {value!r} (valid: {[r.value for r in cls]})") from None


_ROLE_RANKS: dict[Role, int] = {
    Role.admin: 3,
    Role.editor: 2,
    Role.viewer: 1,
}


class Scope(str, Enum):
    """How far a grant reaches: only owned instances, or every instance."""

    own = "own"
    all = "all"


class Action(str, Enum):
    """Actions a grant can cover. A ``manage`` grant covers every action."""

    create = "create"
    read = "read"
    update = "update"
    delete = "delete"
    manage = "manage"

    @classmethod
    def parse(cls, value: str) -> Action | None:
        try:
            return cls(value)
        except ValueError:
            return None


class Resource(str, Enum):
    """Known resource types. ``any`` (``*``) is only valid inside a grant."""

    any = "*"
    products = "products"
    categories = "categories"
    pages = "pages"
    media = "media"
    orders = "orders"
    profile = "profile"
    users = "users"
    settings = "settings"
    security = "security"
    audit = "audit"
    monitoring = "monitoring"
    analytics = "analytics"
    admin = "admin"

    @classmethod
    def parse(cls, value: str) -> Resource | None:
        """Resolve a concrete resource type; the wildcard is never a request target."""
        if value == cls.any.value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def concrete(cls) -> list[Resource]:
        return [r for r in cls if r is not cls.any]


class Principal(BaseModel):
    """The actor a decision is made for. Supplied per call, never stored."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    role: Role
    active: bool = True

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("id cannot be empty or whitespace")
        return v

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v: Any) -> Any:
        if isinstance(v, str) and not isinstance(v, Role):
            return v.strip().lower()
        return v


class CapabilityGrant(BaseModel):
    """A single (resource, action, scope) entry in the capability matrix."""

    model_config = ConfigDict(frozen=True)

    resource: Resource
    action: Action
    scope: Scope = Scope.all

    def covers(self, resource: Resource, action: Action) -> bool:
        if self.resource is not Resource.any and self.resource is not resource:
            return False
        return self.action is Action.manage or self.action is action

    @classmethod
    def parse(cls, text: str) -> CapabilityGrant:
        """Parse ``resource:action[:scope]``, e.g. ``products:read`` or ``profile:manage:own``."""
        parts = [p.strip().lower() for p in text.split(":")]
        if len(parts) not in (2, 3) or not all(parts):
            raise ValueError(f"Invalid grant {text!r}: expected resource:action[:scope]")
        resource, action = parts[0], parts[1]
        scope = parts[2] if len(parts) == 3 else Scope.all.value
        try:
            return cls(resource=resource, action=action, scope=scope)
        except ValidationError as e:
            raise ValueError(f"Invalid grant {text!r}: {e.errors()[0]['msg']}") from None

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.action.value}:{self.scope.value}"


class PermissionRequest(BaseModel):
    """What the caller wants to do. ``resource_owner_id`` is set for instance checks."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    resource: str
    action: str
    resource_owner_id: str | None = Field(default=None, alias="resourceOwnerId")

    @field_validator("resource", "action", mode="before")
    @classmethod
    def normalize(cls, v: Any) -> Any:
        if isinstance(v, Enum):
            v = v.value
        if isinstance(v, str):
            v = v.strip().lower()
            if not v:
                raise ValueError("cannot be empty or whitespace")
        return v

    @field_validator("resource_owner_id", mode="before")
    @classmethod
    def blank_owner_is_absent(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def build(
        cls, resource: str | Resource | None, action: str | Action | None, resource_owner_id: str | None = None
    ) -> PermissionRequest:
        """Validate and build a request, raising PermissionRequestError when malformed."""
        if resource is None:
            raise PermissionRequestError("resource")
        if action is None:
            raise PermissionRequestError("action")
        try:
            return cls(resource=resource, action=action, resource_owner_id=resource_owner_id)
        except ValidationError as e:
            field = str(e.errors()[0]["loc"][0]) if e.errors() else "request"
            raise PermissionRequestError(field, f"Malformed permission request: {e}") from e

    @classmethod
    def coerce(cls, obj: PermissionRequest | Mapping[str, Any] | tuple | list) -> PermissionRequest:
        """Accept a request, a ``{resource, action, resourceOwnerId?}`` mapping, or a tuple."""
        if isinstance(obj, PermissionRequest):
            return obj
        if isinstance(obj, Mapping):
            owner = obj.get("resourceOwnerId", obj.get("resource_owner_id"))
            return cls.build(obj.get("resource"), obj.get("action"), owner)
        if isinstance(obj, (tuple, list)) and 2 <= len(obj) <= 3:
            return cls.build(*obj)
        raise PermissionRequestError("request", f"Malformed permission request: {obj!r}")

    @property
    def is_instance_check(self) -> bool:
        return self.resource_owner_id is not None


class ResourcePermissions(BaseModel):
    """Capability summary for one resource type. ``scope`` is None when there is no access."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    can_create: bool = Field(default=False, alias="canCreate")
    can_read: bool = Field(default=False, alias="canRead")
    can_update: bool = Field(default=False, alias="canUpdate")
    can_delete: bool = Field(default=False, alias="canDelete")
    can_manage: bool = Field(default=False, alias="canManage")
    scope: Scope | None = None

    @property
    def has_access(self) -> bool:
        return self.scope is not None


class BatchResult(BaseModel):
    """Per-item decisions plus the aggregate any/all flags."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    results: list[bool] = Field(default_factory=list)
    has_any: bool = Field(default=False, alias="hasAny")
    has_all: bool = Field(default=True, alias="hasAll")
