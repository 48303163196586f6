"""Invalidation events and their wire format.

On the wire an event is a JSON object::

    {"type": "CACHE_INVALIDATED", "userId": "u1", "timestamp": 1700000000000}

``userId`` selects a user, ``resourceId`` a resource or owner, and neither
means "everything". ``origin`` is optional and lets a broadcaster drop its
own echoes.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

MESSAGE_TYPE = "CACHE_INVALIDATED"


class InvalidationScope(str, Enum):
    all = "all"
    user = "user"
    resource = "resource"


class InvalidationEvent(BaseModel):
    """Closed variant: ALL, USER(id) or RESOURCE(id)."""

    model_config = ConfigDict(frozen=True)

    scope: InvalidationScope
    target_id: str | None = None
    issued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    origin: str | None = None

    @model_validator(mode="after")
    def check_target(self) -> InvalidationEvent:
        if self.scope is InvalidationScope.all:
            if self.target_id is not None:
                raise ValueError("an ALL invalidation cannot name a target")
        elif not self.target_id or not self.target_id.strip():
            raise ValueError(f"a {self.scope.value.upper()} invalidation needs a target id")
        return self

    @classmethod
    def all(cls, origin: str | None = None) -> InvalidationEvent:
        return cls(scope=InvalidationScope.all, origin=origin)

    @classmethod
    def user(cls, user_id: str, origin: str | None = None) -> InvalidationEvent:
        return cls(scope=InvalidationScope.user, target_id=user_id, origin=origin)

    @classmethod
    def resource(cls, resource_id: str, origin: str | None = None) -> InvalidationEvent:
        return cls(scope=InvalidationScope.resource, target_id=resource_id, origin=origin)

    def with_origin(self, origin: str) -> InvalidationEvent:
        return self.model_copy(update={"origin": origin})


class MalformedMessageError(ValueError):
    """An inbound transport message could not be decoded into an event."""


def event_to_message(event: InvalidationEvent) -> dict[str, Any]:
    """Map an event onto the cross-context message schema."""
    message: dict[str, Any] = {
        "type": MESSAGE_TYPE,
        "timestamp": int(event.issued_at.timestamp() * 1000),
    }
    if event.scope is InvalidationScope.user:
        message["userId"] = event.target_id
    elif event.scope is InvalidationScope.resource:
        message["resourceId"] = event.target_id
    if event.origin:
        message["origin"] = event.origin
    return message


def message_to_event(message: dict[str, Any]) -> InvalidationEvent:
    """Rebuild an event from a decoded message, rejecting anything ambiguous."""
    if not isinstance(message, dict):
        raise MalformedMessageError(f"expected an object, got {type(message).__name__}")
    if message.get("type") != MESSAGE_TYPE:
        raise MalformedMessageError(f"unexpected message type: {message.get('type')!r}")

    user_id = message.get("userId")
    resource_id = message.get("resourceId")
    if user_id and resource_id:
        raise MalformedMessageError("message names both userId and resourceId")

    timestamp = message.get("timestamp")
    try:
        issued_at = (
            datetime.fromtimestamp(float(timestamp) / 1000, tz=UTC)
            if timestamp is not None
            else datetime.now(UTC)
        )
    except (TypeError, ValueError, OverflowError) as e:
        raise MalformedMessageError(f"bad timestamp: {timestamp!r}") from e

    origin = message.get("origin") or None
    try:
        if user_id:
            return InvalidationEvent(
                scope=InvalidationScope.user, target_id=str(user_id), issued_at=issued_at, origin=origin
            )
        if resource_id:
            return InvalidationEvent(
                scope=InvalidationScope.resource, target_id=str(resource_id), issued_at=issued_at, origin=origin
            )
        return InvalidationEvent(scope=InvalidationScope.all, issued_at=issued_at, origin=origin)
    except ValueError as e:
        raise MalformedMessageError(str(e)) from e


def encode_event(event: InvalidationEvent) -> str:
    return json.dumps(event_to_message(event), separators=(",", ":"))


def decode_event(raw: str | bytes) -> InvalidationEvent:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        message = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedMessageError(f"invalid JSON: {e}") from e
    return message_to_event(message)
