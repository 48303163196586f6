"""Transport plugin interface for cross-context invalidation messages."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class TransportError(RuntimeError):
    """A transport failed to send or receive."""

    def __init__(self, transport: str, operation: str, cause: Exception | None = None) -> None:
        self.transport = transport
        self.operation = operation
        msg = f"{transport} {operation} failed"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
        self.__cause__ = cause


@runtime_checkable
class InvalidationTransport(Protocol):
    """Carries serialized invalidation messages between execution contexts.

    ``send`` is fire-and-forget. ``receive`` drains whatever has arrived
    since the last call without blocking.
    """

    def send(self, message: str) -> None: ...

    def receive(self) -> list[str]: ...

    def close(self) -> None: ...
