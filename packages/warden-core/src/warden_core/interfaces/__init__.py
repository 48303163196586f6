"""Plugin interfaces for transport extensions."""

from warden_core.interfaces.transport import InvalidationTransport, TransportError

__all__ = [
    "InvalidationTransport",
    "TransportError",
]
