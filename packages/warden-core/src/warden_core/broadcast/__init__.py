"""Invalidation events, the broadcaster, and the in-process transport."""

from warden_core.broadcast.broadcaster import InvalidationBroadcaster, InvalidationHandler
from warden_core.broadcast.events import (
    MESSAGE_TYPE,
    InvalidationEvent,
    InvalidationScope,
    MalformedMessageError,
    decode_event,
    encode_event,
    event_to_message,
    message_to_event,
)
from warden_core.broadcast.memory import InMemoryTransport, MemoryBus

__all__ = [
    "InMemoryTransport",
    "InvalidationBroadcaster",
    "InvalidationEvent",
    "InvalidationHandler",
    "InvalidationScope",
    "MESSAGE_TYPE",
    "MalformedMessageError",
    "MemoryBus",
    "decode_event",
    "encode_event",
    "event_to_message",
    "message_to_event",
]
